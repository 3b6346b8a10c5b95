from hotelops.models.supervisor import Supervisor
from hotelops.models.room import Room
from hotelops.models.note import Note, NoteComment, NoteImage, NoteEstado
from hotelops.models.working_order import (
    WorkingOrder,
    WorkingOrderImage,
    WorkingOrderComment,
    WorkingOrderStatusLog,
    WorkingOrderStatus,
    WorkingOrderSource,
    WorkingOrderSeverity,
)

__all__ = [
    "Supervisor",
    "Room",
    "Note",
    "NoteComment",
    "NoteImage",
    "NoteEstado",
    "WorkingOrder",
    "WorkingOrderImage",
    "WorkingOrderComment",
    "WorkingOrderStatusLog",
    "WorkingOrderStatus",
    "WorkingOrderSource",
    "WorkingOrderSeverity",
]
