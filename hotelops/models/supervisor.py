"""
Supervisor directory - also the authenticated user of the API
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime
from hotelops.database import Base


class Supervisor(Base):
    __tablename__ = "supervisors"

    id = Column(Integer, primary_key=True, index=True)
    nombre = Column(String, nullable=False)
    alias = Column(String, nullable=True, index=True)
    correo = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default="supervisor")  # admin | supervisor
    kind = Column(String, nullable=False, default="SUPERVISOR")  # SUPERVISOR | PROYECTO
    is_active = Column(Boolean, default=True)
    hashed_password = Column(String, nullable=True)  # null = cannot log in
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
