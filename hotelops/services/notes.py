"""
Supervisor task ("note") service
"""
import logging
import re
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hotelops.exceptions import ValidationError, NotFoundError
from hotelops.models.note import Note, NoteComment, NoteImage, NoteEstado
from hotelops.models.supervisor import Supervisor
from hotelops.models.working_order import WorkingOrder
from hotelops.services.linkage import coerce_estado, push_note_status
from hotelops.services.supervisors import require_supervisor
from hotelops.utils.validators import require_text

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"@([\w.\-]+)")
UPDATABLE_FIELDS = ("supervisor_id", "titulo", "actividades", "fecha", "cristal", "imagen")


def extract_mentions(body: str) -> list[str]:
    seen = []
    for alias in MENTION_RE.findall(body or ""):
        alias = alias.rstrip(".-")
        if alias and alias not in seen:
            seen.append(alias)
    return seen


async def get_note_or_404(db: AsyncSession, note_id: str, *options) -> Note:
    query = select(Note).where(Note.id == note_id)
    if options:
        query = query.options(*options).execution_options(populate_existing=True)
    note = (await db.execute(query)).scalar_one_or_none()
    if not note:
        raise NotFoundError(f"note {note_id} not found")
    return note


async def create_note(
    db: AsyncSession,
    *,
    supervisor_id: int,
    titulo: Optional[str],
    fecha: Optional[date],
    actividades: Optional[str] = None,
    cristal: bool = False,
    imagen: Optional[str] = None,
) -> Note:
    titulo = require_text(titulo, "titulo")
    if fecha is None:
        raise ValidationError("fecha is required")
    await require_supervisor(db, supervisor_id)

    now = datetime.utcnow()
    note = Note(
        supervisor_id=supervisor_id,
        titulo=titulo,
        actividades=actividades,
        fecha=fecha,
        estado=NoteEstado.PENDING,
        cristal=bool(cristal),
        imagen=imagen,
        created_at=now,
        updated_at=now,
    )
    db.add(note)
    await db.commit()
    return note


async def get_note(db: AsyncSession, note_id: str) -> Note:
    return await get_note_or_404(
        db,
        note_id,
        selectinload(Note.supervisor),
        selectinload(Note.comments),
        selectinload(Note.images),
    )


async def list_notes(
    db: AsyncSession,
    estado=None,
    supervisor_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    q: Optional[str] = None,
) -> list:
    """Rows of ``(Note, supervisor_nombre, supervisor_correo)``, most recent fecha first"""
    query = (
        select(Note, Supervisor.nombre, Supervisor.correo)
        .join(Supervisor, Supervisor.id == Note.supervisor_id)
        .order_by(Note.fecha.desc(), Note.created_at.desc())
    )
    if estado is not None:
        query = query.where(Note.estado == int(coerce_estado(estado)))
    if supervisor_id is not None:
        query = query.where(Note.supervisor_id == supervisor_id)
    if date_from:
        query = query.where(Note.fecha >= date_from)
    if date_to:
        query = query.where(Note.fecha <= date_to)
    if q:
        pattern = f"%{q}%"
        query = query.where(or_(Note.titulo.ilike(pattern), Note.actividades.ilike(pattern)))
    return (await db.execute(query)).all()


async def update_note(db: AsyncSession, note_id: str, changes: dict) -> Note:
    """Edit note content. estado is changed only through ``change_note_state``."""
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"fields not updatable: {', '.join(sorted(unknown))}")

    note = await get_note_or_404(db, note_id)
    if "titulo" in changes:
        changes["titulo"] = require_text(changes["titulo"], "titulo")
    if "fecha" in changes and changes["fecha"] is None:
        raise ValidationError("fecha cannot be null")
    if "supervisor_id" in changes:
        if changes["supervisor_id"] is None:
            raise ValidationError("supervisor_id cannot be null")
        await require_supervisor(db, changes["supervisor_id"])

    for key, value in changes.items():
        if key == "cristal":
            value = bool(value)
        setattr(note, key, value)
    note.updated_at = datetime.utcnow()

    await db.commit()
    return note


async def change_note_state(
    db: AsyncSession,
    note_id: str,
    estado,
    performed_by: Optional[int] = None,
    comment: Optional[str] = None,
) -> tuple[Note, bool]:
    """Persist the new estado, then push it to the linked working order.

    Returns ``(note, synced)``. The push is best-effort: it runs after the
    note is committed and its failures never surface here.
    """
    estado = coerce_estado(estado)
    note = await get_note_or_404(db, note_id)

    previous = note.estado
    note.estado = int(estado)
    note.updated_at = datetime.utcnow()
    await db.commit()
    logger.info(f"Note {note_id}: estado {previous} -> {int(estado)}")

    synced = await push_note_status(db, note, performed_by=performed_by, comment=comment)
    return note, synced


async def delete_note(db: AsyncSession, note_id: str) -> None:
    """Unlink from any working order, then delete with comments and images"""
    note = await get_note_or_404(db, note_id)
    await db.execute(
        update(WorkingOrder)
        .where(WorkingOrder.note_id == note_id)
        .values(note_id=None, updated_at=datetime.utcnow())
    )
    await db.delete(note)
    await db.commit()
    logger.info(f"Deleted note {note_id}")


async def add_note_comment(
    db: AsyncSession,
    note_id: str,
    body: Optional[str],
    author_id: Optional[int] = None,
    mentions: Optional[list[str]] = None,
) -> NoteComment:
    await get_note_or_404(db, note_id)
    body = require_text(body, "comment body")
    if author_id is not None:
        await require_supervisor(db, author_id, field="authorId")

    comment = NoteComment(
        note_id=note_id,
        author_id=author_id,
        body=body,
        mentions=mentions if mentions is not None else extract_mentions(body),
        created_at=datetime.utcnow(),
    )
    db.add(comment)
    await db.commit()
    return comment


async def add_note_image(db: AsyncSession, note_id: str, url: Optional[str]) -> NoteImage:
    await get_note_or_404(db, note_id)
    url = require_text(url, "url")
    image = NoteImage(note_id=note_id, url=url, created_at=datetime.utcnow())
    db.add(image)
    await db.commit()
    return image
