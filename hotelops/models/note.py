"""
Supervisor task ("note") model with comments and images
"""
import uuid
from enum import IntEnum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from hotelops.database import Base


class NoteEstado(IntEnum):
    PENDING = 0
    IN_PROGRESS = 1
    COMPLETED = 2


def new_id() -> str:
    return str(uuid.uuid4())


class Note(Base):
    __tablename__ = "notes"

    id = Column(String(36), primary_key=True, default=new_id)
    supervisor_id = Column(Integer, ForeignKey("supervisors.id"), nullable=False, index=True)
    titulo = Column(String, nullable=False)
    actividades = Column(Text, nullable=True)
    fecha = Column(Date, nullable=False, index=True)
    estado = Column(Integer, nullable=False, default=NoteEstado.PENDING)
    cristal = Column(Boolean, nullable=False, default=False)  # urgent flag
    imagen = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    supervisor = relationship("Supervisor")
    comments = relationship(
        "NoteComment", back_populates="note", order_by="NoteComment.id",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    images = relationship(
        "NoteImage", back_populates="note", order_by="NoteImage.id",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class NoteComment(Base):
    __tablename__ = "note_comments"

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("supervisors.id"), nullable=True)
    body = Column(Text, nullable=False)
    mentions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    note = relationship("Note", back_populates="comments")
    author = relationship("Supervisor")


class NoteImage(Base):
    __tablename__ = "note_images"

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    note = relationship("Note", back_populates="images")
