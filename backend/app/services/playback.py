import logging
import time
from typing import Optional

from app.models.room import ControlEvent, PlaybackState, TIME_ACTIONS, TRACK_ACTIONS

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def apply_control(state: PlaybackState, event: ControlEvent, now: int) -> Optional[PlaybackState]:
    """
    Returns the next authoritative state for `event`, or None when the event
    is malformed and must be dropped without a broadcast.
    """
    action = event.action
    update = {}

    if action in TIME_ACTIONS:
        if event.current_time is None:
            logger.debug(f"Dropping {action} without currentTime for room {event.room_id}")
            return None
        position = max(0.0, float(event.current_time))
        update["position_seconds"] = position
        if action == "play":
            update["is_playing"] = True
        elif action == "pause":
            update["is_playing"] = False
    elif action in TRACK_ACTIONS:
        if event.index is None or event.index < 0:
            logger.debug(f"Dropping {action} with index={event.index} for room {event.room_id}")
            return None
        update["track_index"] = event.index
        update["position_seconds"] = 0.0
        update["is_playing"] = True
    else:
        logger.debug(f"Dropping unknown action {action!r} for room {event.room_id}")
        return None

    # The anchor never moves backwards, even if the wall clock does
    update["last_update_epoch_ms"] = max(now, state.last_update_epoch_ms)
    return state.model_copy(update=update)
