"""
Working orders API endpoints - guest-reported room issues, their audit trail
and the link to supervisor notes
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date, datetime
from pydantic import BaseModel

from hotelops.database import get_db
from hotelops.models.supervisor import Supervisor
from hotelops.models.working_order import (
    WorkingOrder, WorkingOrderStatus, WorkingOrderSource, WorkingOrderSeverity,
    WORKING_ORDER_CATEGORIES,
)
from hotelops.api.auth import get_current_user
from hotelops.api.notes import build_note_detail
from hotelops.services import working_orders as wo_service
from hotelops.services import linkage

router = APIRouter()


# --- Pydantic Schemas ---

class WorkingOrderListItem(BaseModel):
    id: str
    summary: str
    status: WorkingOrderStatus
    severity: WorkingOrderSeverity
    category: Optional[str]
    source: WorkingOrderSource
    stay_from: date
    stay_to: date
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    note_id: Optional[str]
    assigned_to: Optional[int]
    assigned_nombre: Optional[str] = None
    room_id: int
    room_number: int


class ImageResponse(BaseModel):
    id: int
    url: str
    created_at: Optional[datetime]


class CommentResponse(BaseModel):
    id: int
    author_id: Optional[int]
    author_nombre: Optional[str] = None
    body: str
    created_at: Optional[datetime]


class StatusLogResponse(BaseModel):
    id: int
    status: WorkingOrderStatus
    note: Optional[str]
    performed_by: Optional[int]
    performed_nombre: Optional[str] = None
    created_at: Optional[datetime]


class WorkingOrderDetail(WorkingOrderListItem):
    detail: Optional[str]
    has_pending_next: bool
    created_by: Optional[int]
    resolved_at: Optional[datetime]
    images: List[ImageResponse] = []
    comments: List[CommentResponse] = []
    status_logs: List[StatusLogResponse] = []


class StatusSummary(BaseModel):
    open_cnt: int
    assigned_cnt: int
    inprog_cnt: int
    resolved_cnt: int
    dismissed_cnt: int


class WorkingOrderListResponse(BaseModel):
    page: int
    pageSize: int
    total: int
    data: List[WorkingOrderListItem]
    summary: Optional[StatusSummary] = None


class WorkingOrderCreate(BaseModel):
    roomNumber: Optional[int] = None
    roomId: Optional[int] = None
    stay_from: date
    stay_to: date
    summary: str
    detail: Optional[str] = None
    source: WorkingOrderSource = WorkingOrderSource.MANUAL
    category: Optional[str] = None
    severity: WorkingOrderSeverity = WorkingOrderSeverity.MEDIUM
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    has_pending_next: bool = False
    images: List[str] = []
    initial_comment: Optional[str] = None
    convertToNote: bool = False
    noteSupervisorId: Optional[int] = None
    noteFecha: Optional[date] = None


class WorkingOrderUpdate(BaseModel):
    summary: Optional[str] = None
    detail: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[WorkingOrderSeverity] = None
    status: Optional[WorkingOrderStatus] = None
    assigned_to: Optional[int] = None
    has_pending_next: Optional[bool] = None
    performed_by: Optional[int] = None
    status_note: Optional[str] = None


class StatusActionRequest(BaseModel):
    performed_by: Optional[int] = None
    note: Optional[str] = None


class CommentCreate(BaseModel):
    body: str
    authorId: Optional[int] = None


class ImageCreate(BaseModel):
    url: str


class ConvertToNoteRequest(BaseModel):
    supervisorId: int
    fecha: Optional[date] = None
    initial_comment: Optional[str] = None
    performed_by: Optional[int] = None


class NoteStatusWebhook(BaseModel):
    note_estado: int
    performed_by: Optional[int] = None
    comment: Optional[str] = None


# --- Helpers ---

def _build_list_item(wo: WorkingOrder, assigned_nombre: Optional[str] = None) -> WorkingOrderListItem:
    return WorkingOrderListItem(
        id=wo.id,
        summary=wo.summary,
        status=wo.status,
        severity=wo.severity,
        category=wo.category,
        source=wo.source,
        stay_from=wo.stay_from,
        stay_to=wo.stay_to,
        created_at=wo.created_at,
        updated_at=wo.updated_at,
        note_id=wo.note_id,
        assigned_to=wo.assigned_to,
        assigned_nombre=assigned_nombre,
        room_id=wo.room_id,
        room_number=wo.room_number,
    )


def _build_detail(wo: WorkingOrder) -> WorkingOrderDetail:
    base = _build_list_item(wo, wo.assignee.nombre if wo.assignee else None)
    return WorkingOrderDetail(
        **base.model_dump(),
        detail=wo.detail,
        has_pending_next=bool(wo.has_pending_next),
        created_by=wo.created_by,
        resolved_at=wo.resolved_at,
        images=[ImageResponse(id=i.id, url=i.url, created_at=i.created_at) for i in wo.images],
        comments=[
            CommentResponse(
                id=c.id,
                author_id=c.author_id,
                author_nombre=c.author.nombre if c.author else None,
                body=c.body,
                created_at=c.created_at,
            )
            for c in wo.comments
        ],
        status_logs=[
            StatusLogResponse(
                id=log.id,
                status=log.status,
                note=log.note,
                performed_by=log.performed_by,
                performed_nombre=log.performer.nombre if log.performer else None,
                created_at=log.created_at,
            )
            for log in wo.status_logs
        ],
    )


# --- Endpoints ---

@router.get("/", response_model=WorkingOrderListResponse)
async def list_working_orders(
    q: Optional[str] = None,
    status_filter: Optional[WorkingOrderStatus] = Query(None, alias="status"),
    room_number: Optional[int] = Query(None, alias="roomNumber"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    assigned_to: Optional[int] = None,
    severity: Optional[WorkingOrderSeverity] = None,
    source: Optional[WorkingOrderSource] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, alias="pageSize"),
    with_summary: bool = Query(False, alias="withSummary"),
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """List working orders, newest first, with optional per-status counts"""
    result = await wo_service.list_working_orders(
        db,
        page=page,
        page_size=page_size,
        with_summary=with_summary,
        status=status_filter,
        q=q,
        room_number=room_number,
        date_from=date_from,
        date_to=date_to,
        assigned_to=assigned_to,
        severity=severity,
        source=source,
    )
    return WorkingOrderListResponse(
        page=result["page"],
        pageSize=result["pageSize"],
        total=result["total"],
        data=[_build_list_item(wo, nombre) for wo, nombre in result["rows"]],
        summary=result["summary"],
    )


@router.get("/categories", response_model=List[str])
async def list_categories(current_user: Supervisor = Depends(get_current_user)):
    """Suggested categories for the create form"""
    return WORKING_ORDER_CATEGORIES


@router.get("/analytics/heatmap")
async def get_heatmap(
    by: str = "room",
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Working order counts grouped by room, tower or floor"""
    data = await wo_service.heatmap(db, by, date_from=date_from, date_to=date_to)
    return {"by": by, "data": data}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_working_order(
    data: WorkingOrderCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Create a working order; optionally assign it and convert it to a note"""
    created_by = data.created_by if data.created_by is not None else current_user.id
    fields = dict(
        summary=data.summary,
        stay_from=data.stay_from,
        stay_to=data.stay_to,
        room_number=data.roomNumber,
        room_id=data.roomId,
        detail=data.detail,
        source=data.source,
        category=data.category,
        severity=data.severity,
        created_by=created_by,
        has_pending_next=data.has_pending_next,
        images=data.images,
        initial_comment=data.initial_comment,
    )

    if not data.convertToNote:
        wo = await wo_service.create_working_order(db, assigned_to=data.assigned_to, **fields)
        return {"id": wo.id}

    supervisor_id = data.noteSupervisorId or data.assigned_to
    if supervisor_id is None:
        supervisor_id = current_user.id
    wo, note = await linkage.create_and_convert(
        db, note_supervisor_id=supervisor_id, note_fecha=data.noteFecha, **fields
    )
    return {"id": wo.id, "note_id": note.id}


@router.get("/{wo_id}", response_model=WorkingOrderDetail)
async def get_working_order(
    wo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    wo = await wo_service.get_working_order(db, wo_id)
    return _build_detail(wo)


@router.patch("/{wo_id}")
async def update_working_order(
    wo_id: str,
    data: WorkingOrderUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Partial update; status changes are checked against the transition table"""
    changes = data.model_dump(exclude_unset=True, exclude={"performed_by", "status_note"})
    performed_by = data.performed_by if data.performed_by is not None else current_user.id
    await wo_service.update_working_order(
        db, wo_id, changes, performed_by=performed_by, status_note=data.status_note
    )
    return {"ok": True}


@router.delete("/{wo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_working_order(
    wo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    await wo_service.delete_working_order(db, wo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{wo_id}/resolve")
async def resolve_working_order(
    wo_id: str,
    body: Optional[StatusActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    body = body or StatusActionRequest()
    performed_by = body.performed_by if body.performed_by is not None else current_user.id
    await wo_service.resolve_working_order(db, wo_id, performed_by=performed_by, note=body.note)
    return {"ok": True}


@router.post("/{wo_id}/dismiss")
async def dismiss_working_order(
    wo_id: str,
    body: Optional[StatusActionRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    body = body or StatusActionRequest()
    performed_by = body.performed_by if body.performed_by is not None else current_user.id
    await wo_service.dismiss_working_order(db, wo_id, performed_by=performed_by, note=body.note)
    return {"ok": True}


@router.post("/{wo_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    wo_id: str,
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    author_id = data.authorId if data.authorId is not None else current_user.id
    comment = await wo_service.add_comment(db, wo_id, data.body, author_id=author_id)
    return {"id": comment.id}


@router.get("/{wo_id}/comments")
async def list_comments(
    wo_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    cursor: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Comments newest first; pass nextCursor back as cursor for the next page"""
    result = await wo_service.list_comments(db, wo_id, limit=limit, cursor=cursor)
    return {
        "data": [
            CommentResponse(
                id=c.id, author_id=c.author_id, author_nombre=nombre, body=c.body, created_at=c.created_at
            )
            for c, nombre in result["rows"]
        ],
        "nextCursor": result["nextCursor"],
    }


@router.post("/{wo_id}/images", status_code=status.HTTP_201_CREATED)
async def add_image(
    wo_id: str,
    data: ImageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    image = await wo_service.add_image(db, wo_id, data.url)
    return {"id": image.id}


@router.get("/{wo_id}/status-logs", response_model=List[StatusLogResponse])
async def get_status_logs(
    wo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    rows = await wo_service.get_status_logs(db, wo_id)
    return [
        StatusLogResponse(
            id=log.id,
            status=log.status,
            note=log.note,
            performed_by=log.performed_by,
            performed_nombre=nombre,
            created_at=log.created_at,
        )
        for log, nombre in rows
    ]


@router.post("/{wo_id}/convert-to-note")
async def convert_to_note(
    wo_id: str,
    data: ConvertToNoteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Create the supervisor note for this order and link both"""
    performed_by = data.performed_by if data.performed_by is not None else current_user.id
    note = await linkage.convert_to_note(
        db,
        wo_id,
        data.supervisorId,
        fecha=data.fecha,
        initial_comment=data.initial_comment,
        performed_by=performed_by,
    )
    return {"note_id": note.id}


@router.get("/{wo_id}/linked-note")
async def get_linked_note(
    wo_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    note = await linkage.get_linked_note(db, wo_id)
    return {"note": build_note_detail(note).model_dump() if note else None}


@router.post("/{wo_id}/note-webhook/status")
async def note_status_webhook(
    wo_id: str,
    data: NoteStatusWebhook,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """Push a note estado onto this working order (errors are returned to the caller)"""
    changed = await linkage.sync_note_status(
        db, wo_id, data.note_estado, performed_by=data.performed_by, comment=data.comment
    )
    return {"ok": True, "changed": changed}
