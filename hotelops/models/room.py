"""
Room directory (number -> tower / floor)
"""
from sqlalchemy import Column, Integer, String
from hotelops.database import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(Integer, unique=True, nullable=False, index=True)
    tower = Column(Integer, nullable=True)
    floor = Column(Integer, nullable=True)
    area = Column(String, nullable=True)
