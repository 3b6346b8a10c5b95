"""
Working order <-> supervisor note linkage.

``convert_to_note`` materialises a note from a working order and links them.
``sync_note_status`` pushes a note's estado onto the linked working order; the
push is one-way, a working order status change never touches its note.
``push_note_status`` is the best-effort wrapper used after a note state change:
failures are logged and swallowed so the note update itself stands.
"""
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hotelops.config import get_settings
from hotelops.exceptions import HotelOpsError, ValidationError, NotFoundError, ConflictError, InvalidTransitionError
from hotelops.models.note import Note, NoteEstado, new_id
from hotelops.models.working_order import WorkingOrder, WorkingOrderComment, WorkingOrderStatus
from hotelops.services.supervisors import require_supervisor
from hotelops.services.working_orders import (
    get_working_order_or_404, assign_working_order, create_working_order, transition, is_terminal,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# note estado -> working order status
ESTADO_TO_STATUS = {
    NoteEstado.PENDING: WorkingOrderStatus.ASSIGNED,
    NoteEstado.IN_PROGRESS: WorkingOrderStatus.IN_PROGRESS,
    NoteEstado.COMPLETED: WorkingOrderStatus.RESOLVED,
}


def coerce_estado(value) -> NoteEstado:
    try:
        return NoteEstado(int(value))
    except (TypeError, ValueError):
        raise ValidationError(f"invalid estado '{value}', expected 0, 1 or 2")


def note_title_for(wo: WorkingOrder) -> str:
    title = f"WO Hab. {wo.room_number} - {wo.summary}"
    limit = settings.NOTE_TITLE_MAX_LENGTH
    if len(title) > limit:
        title = title[: limit - 3].rstrip() + "..."
    return title


async def _link_new_note(
    db: AsyncSession,
    wo: WorkingOrder,
    supervisor_id: int,
    fecha: Optional[date],
    initial_comment: Optional[str],
    performed_by: Optional[int],
) -> Note:
    """Create the note and link it to ``wo`` without committing. Caller validated."""
    comment = initial_comment.strip() if initial_comment and initial_comment.strip() else None
    now = datetime.utcnow()

    note = Note(
        id=new_id(),
        supervisor_id=supervisor_id,
        titulo=note_title_for(wo),
        actividades=wo.detail or wo.summary,
        fecha=fecha or date.today(),
        estado=NoteEstado.PENDING,
        cristal=False,
        created_at=now,
        updated_at=now,
    )
    db.add(note)
    await db.flush()

    previous = wo.assigned_to
    wo.note_id = note.id
    assign_working_order(db, wo, supervisor_id, performed_by=performed_by, note=comment)

    # reassignment of an order already past OPEN writes no status row
    if previous is not None and previous != supervisor_id:
        logger.info(f"Working order {wo.id} reassigned from supervisor {previous} to {supervisor_id}")
        db.add(WorkingOrderComment(
            working_order_id=wo.id,
            author_id=performed_by,
            body=f"Reasignado del supervisor {previous} al supervisor {supervisor_id} al convertir en nota",
            created_at=now,
        ))

    if comment:
        db.add(WorkingOrderComment(
            working_order_id=wo.id,
            author_id=performed_by,
            body=comment,
            created_at=now,
        ))
    return note


async def convert_to_note(
    db: AsyncSession,
    wo_id: str,
    supervisor_id: int,
    fecha: Optional[date] = None,
    initial_comment: Optional[str] = None,
    performed_by: Optional[int] = None,
) -> Note:
    """Create a pending note for ``supervisor_id`` and link it to the working order.

    OPEN orders move to ASSIGNED. An order that already has a note is a
    ConflictError; terminal orders cannot be converted.
    """
    wo = await get_working_order_or_404(db, wo_id)
    if wo.note_id:
        raise ConflictError(f"working order {wo_id} is already linked to note {wo.note_id}")
    if is_terminal(wo.status):
        raise InvalidTransitionError(wo.status.value, WorkingOrderStatus.ASSIGNED.value)
    await require_supervisor(db, supervisor_id)

    note = await _link_new_note(db, wo, supervisor_id, fecha, initial_comment, performed_by)
    await db.commit()
    logger.info(f"Working order {wo.id} converted to note {note.id} for supervisor {supervisor_id}")
    return note


async def create_and_convert(
    db: AsyncSession,
    *,
    note_supervisor_id: int,
    note_fecha: Optional[date] = None,
    initial_comment: Optional[str] = None,
    **fields,
) -> tuple[WorkingOrder, Note]:
    """Create a working order and its note in one commit.

    The note supervisor is checked before anything is written, so a bad
    reference leaves no orphan order behind.
    """
    await require_supervisor(db, note_supervisor_id)
    fields.pop("assigned_to", None)
    wo = await create_working_order(db, commit=False, **fields)
    note = await _link_new_note(
        db, wo, note_supervisor_id, note_fecha, initial_comment, fields.get("created_by")
    )
    await db.commit()
    logger.info(f"Created working order {wo.id} with note {note.id} for supervisor {note_supervisor_id}")
    return wo, note


async def sync_note_status(
    db: AsyncSession,
    wo_id: str,
    note_estado,
    performed_by: Optional[int] = None,
    comment: Optional[str] = None,
) -> bool:
    """Map a note estado onto the linked working order.

    Returns True when the working order status changed. Orders already
    RESOLVED or DISMISSED are left alone, as are unassigned orders asked to go
    back to ASSIGNED.
    """
    estado = coerce_estado(note_estado)
    wo = await get_working_order_or_404(db, wo_id)

    if not wo.note_id:
        raise NotFoundError(f"working order {wo_id} has no linked note")
    if await db.get(Note, wo.note_id) is None:
        raise NotFoundError(f"note {wo.note_id} linked to working order {wo_id} no longer exists")

    if is_terminal(wo.status):
        logger.info(f"Working order {wo_id} is {wo.status.value}; ignoring note estado {int(estado)}")
        return False

    target = ESTADO_TO_STATUS[estado]
    if target == WorkingOrderStatus.ASSIGNED and wo.assigned_to is None:
        return False

    changed = transition(db, wo, target, performed_by=performed_by, note=comment)
    if changed:
        await db.commit()
    return changed


async def push_note_status(
    db: AsyncSession,
    note: Note,
    performed_by: Optional[int] = None,
    comment: Optional[str] = None,
) -> bool:
    """Best-effort sync after a note state change. Never raises."""
    note_id = note.id
    estado = note.estado
    wo_id = None
    try:
        wo_id = await db.scalar(select(WorkingOrder.id).where(WorkingOrder.note_id == note_id))
        if wo_id is None:
            return False
        return await sync_note_status(db, wo_id, estado, performed_by=performed_by, comment=comment)
    except (HotelOpsError, SQLAlchemyError) as exc:
        await db.rollback()
        logger.warning(f"Sync of note {note_id} to working order {wo_id} failed: {exc}")
        return False


async def get_linked_note(db: AsyncSession, wo_id: str) -> Optional[Note]:
    wo = await get_working_order_or_404(db, wo_id)
    if not wo.note_id:
        return None
    result = await db.execute(
        select(Note)
        .options(selectinload(Note.comments), selectinload(Note.images), selectinload(Note.supervisor))
        .where(Note.id == wo.note_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
