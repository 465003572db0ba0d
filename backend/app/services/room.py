import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from app.models.room import PlaybackState, Room
from app.services.playback import now_ms

logger = logging.getLogger(__name__)

EvictionPolicy = Callable[[Room], bool]


def keep_rooms(room: Room) -> bool:
    return False


def evict_empty_rooms(room: Room) -> bool:
    return not room.members


class RoomRegistry:
    """
    Process-lifetime mapping of room id -> Room (authoritative PlaybackState
    plus membership). Every room carries its own lock; the registry itself
    never serializes work across rooms.
    """

    def __init__(self, eviction_policy: EvictionPolicy = keep_rooms):
        self._rooms: Dict[str, Room] = {}
        self._sid_room: Dict[str, str] = {}
        self.eviction_policy = eviction_policy

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def members(self, room_id: str) -> List[str]:
        room = self._rooms.get(room_id)
        return list(room.members) if room else []

    def room_of(self, sid: str) -> Optional[str]:
        return self._sid_room.get(sid)

    def join(self, room_id: str, sid: str, identity: Optional[str] = None) -> Tuple[PlaybackState, Optional[str]]:
        """
        Adds `sid` to `room_id`, creating the room with the default state on
        first join. Returns the current state and the room the connection
        left to get here (if any).
        """
        if not room_id:
            raise ValueError("room id is required")

        previous = self._sid_room.get(sid)
        if previous is not None and previous != room_id:
            self.leave(sid)
        else:
            previous = None

        room = self._rooms.get(room_id)
        if room is None:
            room = Room(
                id=room_id,
                state=PlaybackState(last_update_epoch_ms=now_ms()),
                created_at=time.time(),
            )
            self._rooms[room_id] = room
            logger.info(f"Created room {room_id}")

        room.members[sid] = identity
        self._sid_room[sid] = room_id
        return room.state, previous

    def leave(self, sid: str) -> Optional[str]:
        room_id = self._sid_room.pop(sid, None)
        if room_id is None:
            return None

        room = self._rooms.get(room_id)
        if room is not None:
            room.members.pop(sid, None)
            if not room.members:
                self._on_room_empty(room)
        return room_id

    def _on_room_empty(self, room: Room):
        if self.eviction_policy(room):
            logger.info(f"Evicting empty room {room.id}")
            self._rooms.pop(room.id, None)
        else:
            logger.debug(f"Room {room.id} is empty, keeping it")
