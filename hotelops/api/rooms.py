"""
Room directory API endpoints
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
from pydantic import BaseModel

from hotelops.database import get_db
from hotelops.exceptions import ConflictError
from hotelops.models.room import Room
from hotelops.models.supervisor import Supervisor
from hotelops.api.auth import get_current_user, require_admin

router = APIRouter()


class RoomResponse(BaseModel):
    id: int
    number: int
    tower: Optional[int]
    floor: Optional[int]
    area: Optional[str]

    class Config:
        from_attributes = True


class RoomCreate(BaseModel):
    number: int
    tower: Optional[int] = None
    floor: Optional[int] = None
    area: Optional[str] = None


@router.get("/", response_model=List[RoomResponse])
async def list_rooms(
    tower: Optional[int] = None,
    floor: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Supervisor = Depends(get_current_user)
):
    query = select(Room).order_by(Room.number)
    if tower is not None:
        query = query.where(Room.tower == tower)
    if floor is not None:
        query = query.where(Room.floor == floor)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    db: AsyncSession = Depends(get_db),
    admin: Supervisor = Depends(require_admin)
):
    existing = await db.execute(select(Room).where(Room.number == data.number))
    if existing.scalar_one_or_none():
        raise ConflictError(f"room {data.number} already exists")

    room = Room(**data.model_dump())
    db.add(room)
    await db.commit()
    await db.refresh(room)
    return room
