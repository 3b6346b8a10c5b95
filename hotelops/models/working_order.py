"""
Working order model - guest-reported room issues with comments, images and
an append-only status log
"""
from enum import Enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from hotelops.database import Base
from hotelops.models.note import new_id


class WorkingOrderStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class WorkingOrderSource(str, Enum):
    MANUAL = "MANUAL"
    MEDALLIA = "MEDALLIA"


class WorkingOrderSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Suggested categories shown by the UI; not enforced server-side
WORKING_ORDER_CATEGORIES = [
    "Aire acondicionado / HVAC de habitación",
    "Plomería (WC, lavabos, regaderas, drenajes)",
    "Iluminación (lámparas, luminarios, balcones)",
    "Albercas y exteriores (turbidez, filtros, temperatura)",
    "Humedad / olores / moho-hongo / filtraciones",
    "Puertas y herrajes (pestillos, cerraduras, ajustes)",
    "Minibar / refrigerador en habitación",
    "Electrónica y amenidades (TV, control remoto, telefonía, USB, iPad)",
    "Jacuzzi / tina de hidromasaje (función y sellos)",
    "Eléctrico (contactos, GFCI, breakers, voltajes)",
    "Ventiladores de techo / abanicos",
    "Acabados y albañilería (plafón, pintura, azulejos, cantera)",
    "Limpieza / housekeeping (suciedad, polvo, residuos)",
    "Plagas y fauna (cucarachas, insectos, mosquitos, abejas, ácaros)",
    "Ruido / vibraciones (equipos, ventiladores)",
    "Carpintería y mobiliario (closets, puertas de armario, ajustes)",
    "Controles / señalizador DND-MUR / BMS (incluye pantallas/control de habitación)",
    "Seguridad y detección (detectores de humo, alarmas)",
]


class WorkingOrder(Base):
    __tablename__ = "working_orders"

    id = Column(String(36), primary_key=True, default=new_id)

    # Room and stay
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    room_number = Column(Integer, nullable=False, index=True)
    stay_from = Column(Date, nullable=False)
    stay_to = Column(Date, nullable=False)

    # Content
    summary = Column(String, nullable=False)
    detail = Column(Text, nullable=True)
    source = Column(SQLEnum(WorkingOrderSource, native_enum=False), nullable=False, default=WorkingOrderSource.MANUAL)
    category = Column(String, nullable=True)
    severity = Column(SQLEnum(WorkingOrderSeverity, native_enum=False), nullable=False, default=WorkingOrderSeverity.MEDIUM)

    # Workflow
    status = Column(SQLEnum(WorkingOrderStatus, native_enum=False), nullable=False, default=WorkingOrderStatus.OPEN, index=True)
    assigned_to = Column(Integer, ForeignKey("supervisors.id"), nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("supervisors.id"), nullable=True)
    has_pending_next = Column(Boolean, nullable=False, default=False)

    # Linked supervisor task (at most one)
    note_id = Column(String(36), ForeignKey("notes.id", ondelete="SET NULL"), nullable=True, unique=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    room = relationship("Room")
    assignee = relationship("Supervisor", foreign_keys=[assigned_to])
    note = relationship("Note")
    images = relationship(
        "WorkingOrderImage", back_populates="working_order", order_by="WorkingOrderImage.id",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    comments = relationship(
        "WorkingOrderComment", back_populates="working_order", order_by="WorkingOrderComment.id",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    status_logs = relationship(
        "WorkingOrderStatusLog", back_populates="working_order", order_by="WorkingOrderStatusLog.id",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class WorkingOrderImage(Base):
    __tablename__ = "working_order_images"

    id = Column(Integer, primary_key=True, index=True)
    working_order_id = Column(String(36), ForeignKey("working_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    working_order = relationship("WorkingOrder", back_populates="images")


class WorkingOrderComment(Base):
    __tablename__ = "working_order_comments"

    id = Column(Integer, primary_key=True, index=True)
    working_order_id = Column(String(36), ForeignKey("working_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("supervisors.id"), nullable=True)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    working_order = relationship("WorkingOrder", back_populates="comments")
    author = relationship("Supervisor")


class WorkingOrderStatusLog(Base):
    """Append-only audit trail; rows are never updated or deleted on their own"""
    __tablename__ = "working_order_status_logs"

    id = Column(Integer, primary_key=True, index=True)
    working_order_id = Column(String(36), ForeignKey("working_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(WorkingOrderStatus, native_enum=False), nullable=False)
    note = Column(Text, nullable=True)
    performed_by = Column(Integer, ForeignKey("supervisors.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    working_order = relationship("WorkingOrder", back_populates="status_logs")
    performer = relationship("Supervisor")
