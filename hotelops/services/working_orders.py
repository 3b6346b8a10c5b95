"""
Working order service.

Owns creation/validation, partial updates, the status state machine and the
append-only status log. Every status change goes through ``transition`` so a
log row is written exactly once per effective move.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hotelops.config import get_settings
from hotelops.exceptions import ValidationError, NotFoundError, InvalidTransitionError
from hotelops.models.room import Room
from hotelops.models.supervisor import Supervisor
from hotelops.models.working_order import (
    WorkingOrder, WorkingOrderImage, WorkingOrderComment, WorkingOrderStatusLog,
    WorkingOrderStatus, WorkingOrderSource, WorkingOrderSeverity,
)
from hotelops.services.supervisors import require_supervisor
from hotelops.utils.validators import require_text, validate_stay_range

logger = logging.getLogger(__name__)
settings = get_settings()

S = WorkingOrderStatus

ALLOWED_TRANSITIONS = {
    S.OPEN: frozenset({S.ASSIGNED, S.RESOLVED, S.DISMISSED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS, S.RESOLVED, S.DISMISSED}),
    # back to ASSIGNED when the linked task returns to pending
    S.IN_PROGRESS: frozenset({S.ASSIGNED, S.RESOLVED, S.DISMISSED}),
    S.RESOLVED: frozenset(),
    S.DISMISSED: frozenset(),
}

TERMINAL_STATUSES = frozenset({S.RESOLVED, S.DISMISSED})

ASSIGNEE_REQUIRED = frozenset({S.ASSIGNED, S.IN_PROGRESS})

HEATMAP_DIMENSIONS = ("room", "tower", "floor")


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def is_terminal(status) -> bool:
    return coerce_enum(WorkingOrderStatus, status, "status") in TERMINAL_STATUSES


def can_transition(current, target) -> bool:
    current = coerce_enum(WorkingOrderStatus, current, "status")
    target = coerce_enum(WorkingOrderStatus, target, "status")
    return target in ALLOWED_TRANSITIONS[current]


def coerce_enum(enum_cls, value, field: str):
    """Parse an enum value coming from a payload, raising ValidationError"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"invalid {field} '{value}', expected one of: {allowed}")


def record_status(
    db: AsyncSession,
    wo: WorkingOrder,
    status: WorkingOrderStatus,
    note: Optional[str] = None,
    performed_by: Optional[int] = None,
) -> WorkingOrderStatusLog:
    log = WorkingOrderStatusLog(
        working_order_id=wo.id,
        status=status,
        note=note,
        performed_by=performed_by,
        created_at=datetime.utcnow(),
    )
    db.add(log)
    return log


def transition(
    db: AsyncSession,
    wo: WorkingOrder,
    target,
    performed_by: Optional[int] = None,
    note: Optional[str] = None,
) -> bool:
    """Move ``wo`` to ``target``. Returns False when it is already there.

    Does not commit; the caller owns the unit of work.
    """
    target = coerce_enum(WorkingOrderStatus, target, "status")
    current = coerce_enum(WorkingOrderStatus, wo.status, "status")

    if current == target:
        return False
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    now = datetime.utcnow()
    wo.status = target
    wo.updated_at = now
    if target == S.RESOLVED:
        wo.resolved_at = now

    record_status(db, wo, target, note=note, performed_by=performed_by)
    logger.info(
        f"Working order {wo.id}: {current.value} -> {target.value} "
        f"(performed_by={performed_by})"
    )
    return True


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_working_order_or_404(db: AsyncSession, wo_id: str, *options) -> WorkingOrder:
    query = select(WorkingOrder).where(WorkingOrder.id == wo_id)
    if options:
        query = query.options(*options).execution_options(populate_existing=True)
    result = await db.execute(query)
    wo = result.scalar_one_or_none()
    if not wo:
        raise NotFoundError(f"working order {wo_id} not found")
    return wo


async def resolve_room(
    db: AsyncSession, room_number: Optional[int] = None, room_id: Optional[int] = None
) -> Room:
    if room_id is not None:
        room = await db.get(Room, room_id)
    elif room_number is not None:
        result = await db.execute(select(Room).where(Room.number == room_number))
        room = result.scalar_one_or_none()
    else:
        raise ValidationError("roomNumber or roomId is required")

    if not room:
        raise ValidationError(f"room {room_number if room_id is None else room_id} not found")
    return room


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

async def create_working_order(
    db: AsyncSession,
    *,
    summary: Optional[str],
    stay_from: Optional[date],
    stay_to: Optional[date],
    room_number: Optional[int] = None,
    room_id: Optional[int] = None,
    detail: Optional[str] = None,
    source=None,
    category: Optional[str] = None,
    severity=None,
    assigned_to: Optional[int] = None,
    created_by: Optional[int] = None,
    has_pending_next: bool = False,
    images: Optional[list[str]] = None,
    initial_comment: Optional[str] = None,
    commit: bool = True,
) -> WorkingOrder:
    """Validate and persist a new working order.

    Status starts at OPEN (logged). When ``assigned_to`` is given the order is
    assigned right away, leaving it ASSIGNED with a second log row. With
    ``commit=False`` the order is only flushed so the caller can extend the
    unit of work.
    """
    summary = require_text(summary, "summary")
    stay_from, stay_to = validate_stay_range(stay_from, stay_to)

    source = coerce_enum(WorkingOrderSource, source or WorkingOrderSource.MANUAL, "source")
    severity = coerce_enum(WorkingOrderSeverity, severity or WorkingOrderSeverity.MEDIUM, "severity")
    room = await resolve_room(db, room_number=room_number, room_id=room_id)
    if created_by is not None:
        await require_supervisor(db, created_by, field="created_by")
    if assigned_to is not None:
        await require_supervisor(db, assigned_to, field="assigned_to")

    now = datetime.utcnow()
    wo = WorkingOrder(
        room_id=room.id,
        room_number=room.number,
        stay_from=stay_from,
        stay_to=stay_to,
        summary=summary,
        detail=detail,
        source=source,
        category=category,
        severity=severity,
        status=S.OPEN,
        created_by=created_by,
        has_pending_next=has_pending_next,
        created_at=now,
        updated_at=now,
    )
    db.add(wo)
    await db.flush()
    record_status(db, wo, S.OPEN, note="created", performed_by=created_by)

    for url in images or []:
        if url:
            db.add(WorkingOrderImage(working_order_id=wo.id, url=url, created_at=now))

    if initial_comment and initial_comment.strip():
        db.add(WorkingOrderComment(
            working_order_id=wo.id,
            author_id=created_by,
            body=initial_comment.strip(),
            created_at=now,
        ))

    if assigned_to is not None:
        wo.assigned_to = assigned_to
        transition(db, wo, S.ASSIGNED, performed_by=created_by)

    if not commit:
        await db.flush()
        return wo
    await db.commit()
    logger.info(f"Created working order {wo.id} for room {room.number} ({severity.value})")
    return wo


async def get_working_order(db: AsyncSession, wo_id: str) -> WorkingOrder:
    return await get_working_order_or_404(
        db,
        wo_id,
        selectinload(WorkingOrder.assignee),
        selectinload(WorkingOrder.images),
        selectinload(WorkingOrder.comments).selectinload(WorkingOrderComment.author),
        selectinload(WorkingOrder.status_logs).selectinload(WorkingOrderStatusLog.performer),
    )


def _list_filters(
    q: Optional[str] = None,
    status=None,
    room_number: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    assigned_to: Optional[int] = None,
    severity=None,
    source=None,
) -> list:
    filters = []
    if q:
        pattern = f"%{q}%"
        filters.append(or_(
            WorkingOrder.summary.ilike(pattern),
            WorkingOrder.detail.ilike(pattern),
            WorkingOrder.category.ilike(pattern),
        ))
    if status:
        filters.append(WorkingOrder.status == coerce_enum(WorkingOrderStatus, status, "status"))
    if room_number is not None:
        filters.append(WorkingOrder.room_number == room_number)
    if date_from:
        filters.append(WorkingOrder.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        filters.append(WorkingOrder.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    if assigned_to is not None:
        filters.append(WorkingOrder.assigned_to == assigned_to)
    if severity:
        filters.append(WorkingOrder.severity == coerce_enum(WorkingOrderSeverity, severity, "severity"))
    if source:
        filters.append(WorkingOrder.source == coerce_enum(WorkingOrderSource, source, "source"))
    return filters


async def list_working_orders(
    db: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 50,
    with_summary: bool = False,
    status=None,
    **filter_kwargs,
) -> dict:
    """Paginated list, newest first.

    Returns ``{"page", "pageSize", "total", "rows", "summary"}`` where rows are
    ``(WorkingOrder, assigned_nombre)`` tuples.
    """
    page = max(page, 1)
    page_size = min(max(page_size, 1), settings.WORKING_ORDERS_MAX_PAGE_SIZE)
    filters = _list_filters(status=status, **filter_kwargs)

    total = await db.scalar(select(func.count(WorkingOrder.id)).where(*filters))

    query = (
        select(WorkingOrder, Supervisor.nombre)
        .outerjoin(Supervisor, Supervisor.id == WorkingOrder.assigned_to)
        .where(*filters)
        .order_by(WorkingOrder.created_at.desc(), WorkingOrder.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)

    summary = None
    if with_summary:
        summary = await status_summary(db, _list_filters(**filter_kwargs))

    return {
        "page": page,
        "pageSize": page_size,
        "total": total or 0,
        "rows": result.all(),
        "summary": summary,
    }


async def status_summary(db: AsyncSession, filters: list) -> dict:
    result = await db.execute(
        select(WorkingOrder.status, func.count(WorkingOrder.id))
        .where(*filters)
        .group_by(WorkingOrder.status)
    )
    counts = {coerce_enum(WorkingOrderStatus, status, "status"): n for status, n in result.all()}
    return {
        "open_cnt": counts.get(S.OPEN, 0),
        "assigned_cnt": counts.get(S.ASSIGNED, 0),
        "inprog_cnt": counts.get(S.IN_PROGRESS, 0),
        "resolved_cnt": counts.get(S.RESOLVED, 0),
        "dismissed_cnt": counts.get(S.DISMISSED, 0),
    }


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

UPDATABLE_FIELDS = ("summary", "detail", "category", "severity", "status", "assigned_to", "has_pending_next")


def assign_working_order(
    db: AsyncSession,
    wo: WorkingOrder,
    supervisor_id: int,
    performed_by: Optional[int] = None,
    note: Optional[str] = None,
) -> bool:
    """Set the assignee and move OPEN orders to ASSIGNED. Caller validates the supervisor."""
    wo.assigned_to = supervisor_id
    wo.updated_at = datetime.utcnow()
    if wo.status == S.OPEN:
        return transition(db, wo, S.ASSIGNED, performed_by=performed_by, note=note)
    return False


async def update_working_order(
    db: AsyncSession,
    wo_id: str,
    changes: dict,
    performed_by: Optional[int] = None,
    status_note: Optional[str] = None,
) -> WorkingOrder:
    """Apply a partial update. ``changes`` holds only the fields the caller sent."""
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"fields not updatable: {', '.join(sorted(unknown))}")

    wo = await get_working_order_or_404(db, wo_id)

    # validate everything before writing anything
    if "summary" in changes:
        changes["summary"] = require_text(changes["summary"], "summary")
    if changes.get("severity") is not None:
        changes["severity"] = coerce_enum(WorkingOrderSeverity, changes["severity"], "severity")
    elif "severity" in changes:
        raise ValidationError("severity cannot be null")
    target_status = None
    if changes.get("status") is not None:
        target_status = coerce_enum(WorkingOrderStatus, changes["status"], "status")
        if target_status != wo.status and not can_transition(wo.status, target_status):
            raise InvalidTransitionError(coerce_enum(WorkingOrderStatus, wo.status, "status").value, target_status.value)
    if changes.get("assigned_to") is not None:
        await require_supervisor(db, changes["assigned_to"], field="assigned_to")
    assignee = changes["assigned_to"] if "assigned_to" in changes else wo.assigned_to
    resulting_status = target_status or coerce_enum(WorkingOrderStatus, wo.status, "status")
    if assignee is None and resulting_status in ASSIGNEE_REQUIRED:
        raise ValidationError(f"a working order in {resulting_status.value} needs assigned_to")

    for field in ("summary", "detail", "category", "severity", "has_pending_next"):
        if field in changes:
            value = changes[field]
            if field == "has_pending_next":
                value = bool(value)
            setattr(wo, field, value)

    if "assigned_to" in changes:
        if changes["assigned_to"] is not None and target_status is None:
            assign_working_order(db, wo, changes["assigned_to"], performed_by=performed_by, note=status_note)
        else:
            wo.assigned_to = changes["assigned_to"]

    if target_status is not None:
        transition(db, wo, target_status, performed_by=performed_by, note=status_note)

    wo.updated_at = datetime.utcnow()
    await db.commit()
    return wo


async def resolve_working_order(
    db: AsyncSession, wo_id: str, performed_by: Optional[int] = None, note: Optional[str] = None
) -> WorkingOrder:
    """Direct resolve; a linked note is left untouched"""
    wo = await get_working_order_or_404(db, wo_id)
    if transition(db, wo, S.RESOLVED, performed_by=performed_by, note=note):
        await db.commit()
    return wo


async def dismiss_working_order(
    db: AsyncSession, wo_id: str, performed_by: Optional[int] = None, note: Optional[str] = None
) -> WorkingOrder:
    """Direct dismiss; a linked note is left untouched"""
    wo = await get_working_order_or_404(db, wo_id)
    if transition(db, wo, S.DISMISSED, performed_by=performed_by, note=note):
        await db.commit()
    return wo


async def delete_working_order(db: AsyncSession, wo_id: str) -> None:
    wo = await get_working_order_or_404(db, wo_id)
    await db.delete(wo)
    await db.commit()
    logger.info(f"Deleted working order {wo_id}")


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------

async def add_comment(
    db: AsyncSession, wo_id: str, body: Optional[str], author_id: Optional[int] = None
) -> WorkingOrderComment:
    await get_working_order_or_404(db, wo_id)
    body = require_text(body, "comment body")
    if author_id is not None:
        await require_supervisor(db, author_id, field="authorId")

    comment = WorkingOrderComment(
        working_order_id=wo_id,
        author_id=author_id,
        body=body,
        created_at=datetime.utcnow(),
    )
    db.add(comment)
    await db.commit()
    return comment


async def list_comments(
    db: AsyncSession, wo_id: str, limit: Optional[int] = None, cursor: Optional[int] = None
) -> dict:
    """Newest first. ``cursor`` is the exclusive upper bound on comment id."""
    await get_working_order_or_404(db, wo_id)
    limit = min(max(limit or settings.COMMENTS_PAGE_LIMIT, 1), 100)

    query = (
        select(WorkingOrderComment, Supervisor.nombre)
        .outerjoin(Supervisor, Supervisor.id == WorkingOrderComment.author_id)
        .where(WorkingOrderComment.working_order_id == wo_id)
        .order_by(WorkingOrderComment.id.desc())
        .limit(limit + 1)
    )
    if cursor:
        query = query.where(WorkingOrderComment.id < cursor)

    rows = (await db.execute(query)).all()
    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = rows[-1][0].id
    return {"rows": rows, "nextCursor": next_cursor}


async def add_image(db: AsyncSession, wo_id: str, url: Optional[str]) -> WorkingOrderImage:
    await get_working_order_or_404(db, wo_id)
    url = require_text(url, "url")
    image = WorkingOrderImage(working_order_id=wo_id, url=url, created_at=datetime.utcnow())
    db.add(image)
    await db.commit()
    return image


async def get_status_logs(db: AsyncSession, wo_id: str) -> list:
    """Audit trail, oldest first, as ``(WorkingOrderStatusLog, performed_nombre)`` rows"""
    await get_working_order_or_404(db, wo_id)
    result = await db.execute(
        select(WorkingOrderStatusLog, Supervisor.nombre)
        .outerjoin(Supervisor, Supervisor.id == WorkingOrderStatusLog.performed_by)
        .where(WorkingOrderStatusLog.working_order_id == wo_id)
        .order_by(WorkingOrderStatusLog.id)
    )
    return result.all()


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

async def heatmap(
    db: AsyncSession, by: str, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> list[dict]:
    if by not in HEATMAP_DIMENSIONS:
        raise ValidationError(f"invalid heatmap dimension '{by}', expected one of: {', '.join(HEATMAP_DIMENSIONS)}")

    column = {
        "room": WorkingOrder.room_number,
        "tower": Room.tower,
        "floor": Room.floor,
    }[by]

    query = (
        select(column, func.count(WorkingOrder.id))
        .join(Room, Room.id == WorkingOrder.room_id)
        .where(*_list_filters(date_from=date_from, date_to=date_to))
        .group_by(column)
        .order_by(column)
    )
    result = await db.execute(query)
    return [{by: key, "total": total} for key, total in result.all() if key is not None]
