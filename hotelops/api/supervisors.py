"""
Supervisor directory API endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel

from hotelops.database import get_db
from hotelops.models.supervisor import Supervisor
from hotelops.api.auth import get_current_user, require_admin, get_password_hash
from hotelops.services import supervisors as supervisor_service

router = APIRouter()


# --- Pydantic Schemas ---

class SupervisorResponse(BaseModel):
    id: int
    nombre: str
    alias: Optional[str]
    correo: str
    role: str
    kind: str
    is_active: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class SupervisorCreate(BaseModel):
    nombre: str
    correo: str
    alias: Optional[str] = None
    role: str = "supervisor"
    kind: str = "SUPERVISOR"
    is_active: bool = True
    password: Optional[str] = None


class SupervisorUpdate(BaseModel):
    nombre: Optional[str] = None
    correo: Optional[str] = None
    alias: Optional[str] = None
    role: Optional[str] = None
    kind: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None


# --- Endpoints ---

@router.get("/", response_model=List[SupervisorResponse])
async def list_supervisors(
    q: Optional[str] = None,
    kind: Optional[str] = None,
    active: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    """List supervisors, optionally filtered by text, kind and active flag"""
    return await supervisor_service.list_supervisors(db, q=q, kind=kind, active_only=active)


@router.post("/", response_model=SupervisorResponse, status_code=status.HTTP_201_CREATED)
async def create_supervisor(
    data: SupervisorCreate,
    db: AsyncSession = Depends(get_db),
    admin: Supervisor = Depends(require_admin)
):
    payload = data.model_dump(exclude={"password"})
    hashed = get_password_hash(data.password) if data.password else None
    return await supervisor_service.create_supervisor(db, payload, hashed_password=hashed)


@router.put("/{supervisor_id}", response_model=SupervisorResponse)
async def update_supervisor(
    supervisor_id: int,
    data: SupervisorUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Supervisor = Depends(require_admin)
):
    changes = data.model_dump(exclude_none=True, exclude={"password"})
    hashed = get_password_hash(data.password) if data.password else None
    return await supervisor_service.update_supervisor(db, supervisor_id, changes, hashed_password=hashed)


@router.delete("/{supervisor_id}")
async def deactivate_supervisor(
    supervisor_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Supervisor = Depends(require_admin)
):
    await supervisor_service.deactivate_supervisor(db, supervisor_id)
    return {"message": "Supervisor deactivated", "id": supervisor_id}
