import logging
from typing import Any, Optional

from pydantic import ValidationError

from app.models.room import ControlEvent, PlaybackState
from app.services.playback import apply_control, now_ms
from app.services.room import RoomRegistry

logger = logging.getLogger(__name__)

SYNC_EVENT = "sync-state"


class StateBroadcaster:
    """
    Applies control events to a room's authoritative state and fans the
    result out to every member of the room, sender included.
    """

    def __init__(self, sio, registry: RoomRegistry):
        self.sio = sio
        self.registry = registry

    async def join(self, sid: str, room_id: str, identity: Optional[str] = None) -> PlaybackState:
        state, previous = self.registry.join(room_id, sid, identity)
        if previous:
            await self.sio.leave_room(sid, previous)
        await self.sio.enter_room(sid, room_id)
        logger.info(f"User {identity} ({sid}) joined room {room_id}")

        # Only the newcomer needs the snapshot; everyone else is already in sync
        await self.sio.emit(SYNC_EVENT, state.to_wire(), to=sid)
        return state

    def leave(self, sid: str) -> Optional[str]:
        room_id = self.registry.leave(sid)
        if room_id:
            logger.info(f"Removed {sid} from room {room_id}")
        return room_id

    async def control(self, sid: str, data: Any) -> Optional[PlaybackState]:
        try:
            event = ControlEvent.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Dropping malformed control from {sid}: {e}")
            return None

        room = self.registry.get(event.room_id)
        if room is None:
            logger.warning(f"Control {event.action} for unknown room {event.room_id} from {sid}")
            return None

        if self.registry.room_of(sid) != room.id:
            logger.warning(f"Control {event.action} for room {room.id} from {sid}, which is not a member")

        async with room.lock:
            next_state = apply_control(room.state, event, now_ms())
            if next_state is None:
                return None
            room.state = next_state
            # Broadcast while still holding the lock so fan-out order matches mutation order
            await self.sio.emit(SYNC_EVENT, next_state.to_wire(), room=room.id)

        logger.debug(f"Room {room.id} {event.action}: {next_state.to_wire()}")
        return next_state
