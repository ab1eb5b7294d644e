"""
Room endpoints.
"""

from fastapi import APIRouter, Depends, status

from app.api.deps import get_store
from app.core.security import Actor, get_current_actor
from app.schemas.room import RoomCreate, RoomResponse
from app.services.interfaces.store import RecordStore
from app.services.room_service import create_room, get_room

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room_endpoint(
    room_data: RoomCreate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Register a room. Admins only."""
    return await create_room(store, actor, room_data)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room_endpoint(
    room_id: int,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await get_room(store, room_id)
