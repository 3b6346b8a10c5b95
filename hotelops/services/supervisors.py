"""
Supervisor directory helpers
"""
from typing import Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from hotelops.exceptions import ValidationError, NotFoundError, ConflictError
from hotelops.models.supervisor import Supervisor
from hotelops.utils.validators import require_text

SUPERVISOR_KINDS = ("SUPERVISOR", "PROYECTO")
SUPERVISOR_ROLES = ("admin", "supervisor")


async def require_supervisor(db: AsyncSession, supervisor_id: int, field: str = "supervisorId") -> Supervisor:
    """Referenced supervisors must exist; a dangling id is a payload error"""
    supervisor = await db.get(Supervisor, supervisor_id)
    if not supervisor:
        raise ValidationError(f"{field}: supervisor {supervisor_id} not found")
    return supervisor


async def get_supervisor_or_404(db: AsyncSession, supervisor_id: int) -> Supervisor:
    supervisor = await db.get(Supervisor, supervisor_id)
    if not supervisor:
        raise NotFoundError(f"supervisor {supervisor_id} not found")
    return supervisor


async def list_supervisors(
    db: AsyncSession,
    q: Optional[str] = None,
    kind: Optional[str] = None,
    active_only: bool = False,
) -> list[Supervisor]:
    query = select(Supervisor).order_by(Supervisor.nombre)
    if q:
        pattern = f"%{q}%"
        query = query.where(or_(
            Supervisor.nombre.ilike(pattern),
            Supervisor.alias.ilike(pattern),
            Supervisor.correo.ilike(pattern),
        ))
    if kind:
        query = query.where(Supervisor.kind == kind)
    if active_only:
        query = query.where(Supervisor.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_by_correo(db: AsyncSession, correo: str) -> Optional[Supervisor]:
    result = await db.execute(select(Supervisor).where(Supervisor.correo == correo.strip().lower()))
    return result.scalar_one_or_none()


def _check_choices(data: dict) -> None:
    if data.get("kind") is not None and data["kind"] not in SUPERVISOR_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(SUPERVISOR_KINDS)}")
    if data.get("role") is not None and data["role"] not in SUPERVISOR_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(SUPERVISOR_ROLES)}")


async def create_supervisor(db: AsyncSession, data: dict, hashed_password: Optional[str] = None) -> Supervisor:
    _check_choices(data)
    nombre = require_text(data.get("nombre"), "nombre")
    correo = require_text(data.get("correo"), "correo").lower()
    if await get_by_correo(db, correo):
        raise ConflictError(f"a supervisor with correo {correo} already exists")

    supervisor = Supervisor(
        nombre=nombre,
        alias=data.get("alias"),
        correo=correo,
        role=data.get("role") or "supervisor",
        kind=data.get("kind") or "SUPERVISOR",
        is_active=data.get("is_active", True),
        hashed_password=hashed_password,
    )
    db.add(supervisor)
    await db.commit()
    await db.refresh(supervisor)
    return supervisor


async def update_supervisor(
    db: AsyncSession, supervisor_id: int, changes: dict, hashed_password: Optional[str] = None
) -> Supervisor:
    supervisor = await get_supervisor_or_404(db, supervisor_id)
    _check_choices(changes)
    if "nombre" in changes:
        changes["nombre"] = require_text(changes["nombre"], "nombre")
    if "correo" in changes:
        correo = require_text(changes["correo"], "correo").lower()
        existing = await get_by_correo(db, correo)
        if existing and existing.id != supervisor_id:
            raise ConflictError(f"a supervisor with correo {correo} already exists")
        changes["correo"] = correo

    for key, value in changes.items():
        setattr(supervisor, key, value)
    if hashed_password:
        supervisor.hashed_password = hashed_password

    await db.commit()
    await db.refresh(supervisor)
    return supervisor


async def deactivate_supervisor(db: AsyncSession, supervisor_id: int) -> Supervisor:
    """Soft delete; notes and status logs keep pointing at the row"""
    supervisor = await get_supervisor_or_404(db, supervisor_id)
    supervisor.is_active = False
    await db.commit()
    return supervisor
