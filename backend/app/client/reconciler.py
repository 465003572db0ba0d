import logging
from dataclasses import dataclass
from typing import Callable, Optional

from app import config
from app.client.player import AudioPlayer, AutoplayBlocked, HAVE_FUTURE_DATA
from app.models.room import PlaybackState
from app.services.playback import now_ms

logger = logging.getLogger(__name__)


def expected_position(state: PlaybackState, now: int) -> float:
    """Where the authoritative timeline is at `now` (epoch ms)."""
    if not state.is_playing:
        return state.position_seconds
    # A client clock behind the server must not rewind the timeline
    elapsed = max(0, now - state.last_update_epoch_ms) / 1000
    return state.position_seconds + elapsed


@dataclass
class Reconciliation:
    drift: float = 0.0
    track_loaded: bool = False
    track_missing: bool = False
    seeked_to: Optional[float] = None
    started: bool = False
    paused: bool = False
    autoplay_blocked: bool = False


class DriftReconciler:
    """
    Converges a local AudioPlayer onto a broadcast PlaybackState. Corrections
    happen only past `threshold` seconds of drift so network jitter never
    turns into constant micro-seeking.
    """

    def __init__(self, player: AudioPlayer, resolve_track: Callable[[int], Optional[str]],
                 threshold: float = config.SEEK_THRESHOLD, clock: Callable[[], int] = now_ms):
        self.player = player
        self.resolve_track = resolve_track
        self.threshold = threshold
        self.clock = clock
        self.loaded_index: Optional[int] = None
        # True while the reconciler itself is moving the playhead
        self.applying_correction = False

    def load_track(self, index: int) -> bool:
        track = self.resolve_track(index)
        if track is None:
            logger.warning(f"Track index {index} is not in the local track list")
            return False
        self.player.load(track)
        self.loaded_index = index
        return True

    def reconcile(self, state: PlaybackState, suppress_seek: bool = False) -> Reconciliation:
        result = Reconciliation()

        # Time correction on the wrong track is meaningless, so switch first
        if state.track_index != self.loaded_index:
            if not self.load_track(state.track_index):
                result.track_missing = True
                # Never keep playing a track the room has moved away from
                if not self.player.paused:
                    self.player.pause()
                    result.paused = True
                return result
            result.track_loaded = True

        expected = expected_position(state, self.clock())
        result.drift = abs(self.player.position - expected)

        if result.drift > self.threshold and not suppress_seek and self.player.ready_state >= HAVE_FUTURE_DATA:
            self.applying_correction = True
            try:
                self.player.seek(expected)
            finally:
                self.applying_correction = False
            result.seeked_to = expected
            logger.info(f"Corrected time: {expected:.2f}s (Drift: {result.drift:.2f}s)")

        if state.is_playing and self.player.paused:
            try:
                self.player.play()
                result.started = True
            except AutoplayBlocked:
                result.autoplay_blocked = True
                logger.warning("Auto-play blocked, please interact with the player.")
        elif not state.is_playing and not self.player.paused:
            self.player.pause()
            result.paused = True

        return result
