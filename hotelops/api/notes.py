"""
Notes API endpoints - supervisor task board
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel

from hotelops.database import get_db
from hotelops.models.note import Note
from hotelops.models.supervisor import Supervisor
from hotelops.api.auth import get_current_user, require_admin
from hotelops.services import notes as note_service

router = APIRouter()


# --- Pydantic Schemas ---

class NoteResponse(BaseModel):
    id: str
    supervisor_id: int
    titulo: str
    actividades: Optional[str]
    fecha: date
    estado: int
    cristal: bool
    imagen: Optional[str]
    supervisor_nombre: Optional[str] = None
    supervisor_correo: Optional[str] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class NoteCommentResponse(BaseModel):
    id: int
    note_id: str
    author_id: Optional[int]
    body: str
    mentions: List[str] = []
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class NoteImageResponse(BaseModel):
    id: int
    url: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class NoteDetailResponse(NoteResponse):
    comments: List[NoteCommentResponse] = []
    images: List[NoteImageResponse] = []


class NoteCreate(BaseModel):
    supervisorId: int
    titulo: str
    actividades: Optional[str] = None
    fecha: date
    cristal: bool = False
    imagen: Optional[str] = None


class NoteUpdate(BaseModel):
    supervisor_id: Optional[int] = None
    titulo: Optional[str] = None
    actividades: Optional[str] = None
    fecha: Optional[date] = None
    cristal: Optional[bool] = None
    imagen: Optional[str] = None


class NoteStateChange(BaseModel):
    estado: int
    performed_by: Optional[int] = None
    comment: Optional[str] = None


class NoteCommentCreate(BaseModel):
    body: str
    authorId: Optional[int] = None
    mentions: Optional[List[str]] = None


class NoteImageCreate(BaseModel):
    url: str


# --- Helpers ---

def _build_note(n: Note, nombre: Optional[str] = None, correo: Optional[str] = None) -> NoteResponse:
    return NoteResponse(
        id=n.id,
        supervisor_id=n.supervisor_id,
        titulo=n.titulo,
        actividades=n.actividades,
        fecha=n.fecha,
        estado=n.estado,
        cristal=bool(n.cristal),
        imagen=n.imagen,
        supervisor_nombre=nombre,
        supervisor_correo=correo,
        created_at=n.created_at,
        updated_at=n.updated_at,
    )


def build_note_detail(n: Note) -> NoteDetailResponse:
    """Note with comments and images; relationships must already be loaded"""
    base = _build_note(
        n,
        n.supervisor.nombre if n.supervisor else None,
        n.supervisor.correo if n.supervisor else None,
    )
    return NoteDetailResponse(
        **base.model_dump(),
        comments=[NoteCommentResponse.model_validate(c) for c in n.comments],
        images=[NoteImageResponse.model_validate(i) for i in n.images],
    )


# --- Endpoints ---

@router.get("/", response_model=List[NoteResponse])
async def list_notes(
    estado: Optional[int] = Query(None, ge=0, le=2),
    supervisor_id: Optional[int] = Query(None, alias="supervisorId"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    rows = await note_service.list_notes(
        db, estado=estado, supervisor_id=supervisor_id, date_from=date_from, date_to=date_to, q=q
    )
    return [_build_note(n, nombre, correo) for n, nombre, correo in rows]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_note(
    data: NoteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    note = await note_service.create_note(
        db,
        supervisor_id=data.supervisorId,
        titulo=data.titulo,
        actividades=data.actividades,
        fecha=data.fecha,
        cristal=data.cristal,
        imagen=data.imagen,
    )
    return {"id": note.id}


@router.get("/{note_id}", response_model=NoteDetailResponse)
async def get_note(
    note_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    note = await note_service.get_note(db, note_id)
    return build_note_detail(note)


@router.put("/{note_id}")
async def update_note(
    note_id: str,
    data: NoteUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    await note_service.update_note(db, note_id, data.model_dump(exclude_unset=True))
    return {"ok": True}


@router.patch("/{note_id}/state")
async def change_note_state(
    note_id: str,
    data: NoteStateChange,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Change estado; the linked working order follows on a best-effort basis"""
    performed_by = data.performed_by if data.performed_by is not None else current_user.id
    _, synced = await note_service.change_note_state(
        db, note_id, data.estado, performed_by=performed_by, comment=data.comment
    )
    return {"ok": True, "id": note_id, "estado": data.estado, "working_order_synced": synced}


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Supervisor = Depends(require_admin)
):
    await note_service.delete_note(db, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{note_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_note_comment(
    note_id: str,
    data: NoteCommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    author_id = data.authorId if data.authorId is not None else current_user.id
    comment = await note_service.add_note_comment(
        db, note_id, data.body, author_id=author_id, mentions=data.mentions
    )
    return {"id": comment.id, "mentions": comment.mentions}


@router.post("/{note_id}/images", status_code=status.HTTP_201_CREATED)
async def add_note_image(
    note_id: str,
    data: NoteImageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    image = await note_service.add_note_image(db, note_id, data.url)
    return {"id": image.id}
