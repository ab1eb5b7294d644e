"""Room inventory: create and read, plus the department scope check on rooms."""

from typing import Optional

from app.core.exceptions import ConflictError
from app.core.logging import get_logger
from app.core.security import ADMIN_ROLES, DEPARTMENT_ADMIN, Actor, ensure_department_scope, require_role
from app.models.room import Room
from app.schemas.room import RoomCreate
from app.services.interfaces.store import RecordStore

logger = get_logger(__name__)


async def ensure_room_scope(store: RecordStore, actor: Actor, room_id: Optional[int], action: str) -> None:
    """Department admins may only manage rooms of their department or unowned rooms."""
    if room_id is None or actor.role != DEPARTMENT_ADMIN:
        return
    room = await store.get(Room, room_id)
    if room is not None:
        ensure_department_scope(actor, room.department_id, action)


async def create_room(store: RecordStore, actor: Actor, data: RoomCreate) -> Room:
    require_role(actor, ADMIN_ROLES, "create rooms")
    department_id = data.department_id
    if actor.role == DEPARTMENT_ADMIN:
        if department_id is None:
            department_id = actor.department_id
        ensure_department_scope(actor, department_id, "create rooms")

    existing = await store.find(Room, Room.code == data.code)
    if existing:
        raise ConflictError(f"Room code '{data.code}' is already in use", conflicting_ids=[r.id for r in existing])

    room = await store.insert(
        Room(
            name=data.name,
            code=data.code,
            capacity=data.capacity,
            department_id=department_id,
            facilities=list(data.facilities),
            is_available=True,
        )
    )
    logger.info("room_created", room_id=room.id, code=room.code, department_id=department_id)
    return room


async def get_room(store: RecordStore, room_id: int) -> Room:
    return await store.get_or_raise(Room, room_id)
