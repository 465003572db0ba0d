import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Same scale as HTMLMediaElement.readyState
HAVE_NOTHING = 0
HAVE_METADATA = 1
HAVE_CURRENT_DATA = 2
HAVE_FUTURE_DATA = 3
HAVE_ENOUGH_DATA = 4


class AutoplayBlocked(Exception):
    """The platform refused to start playback without a user gesture."""


class AudioPlayer:
    """
    Local audio output driven by the reconciler. Implementations call
    `on_seeked` whenever the position changes discontinuously, whoever
    caused it.
    """

    on_seeked: Optional[Callable[[float], None]] = None
    on_ended: Optional[Callable[[], None]] = None

    @property
    def track(self) -> Optional[str]:
        raise NotImplementedError

    @property
    def position(self) -> float:
        raise NotImplementedError

    @property
    def paused(self) -> bool:
        raise NotImplementedError

    @property
    def ready_state(self) -> int:
        raise NotImplementedError

    def load(self, track: str):
        raise NotImplementedError

    def seek(self, position: float):
        raise NotImplementedError

    def play(self):
        raise NotImplementedError

    def pause(self):
        raise NotImplementedError


class SimulatedPlayer(AudioPlayer):
    """Wall-clock driven player with no audio device, for headless clients and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, duration: float = None,
                 autoplay_allowed: bool = True, ready_state: int = HAVE_ENOUGH_DATA):
        self.clock = clock
        self.duration = duration
        self.autoplay_allowed = autoplay_allowed
        self.loaded_ready_state = ready_state
        self._track = None
        self._ready_state = HAVE_NOTHING
        self._offset = 0.0
        self._started_at = None  # clock() when playback last (re)started

    @property
    def track(self):
        return self._track

    @property
    def position(self):
        if self._started_at is None:
            return self._offset
        pos = self._offset + (self.clock() - self._started_at)
        if self.duration is not None:
            pos = min(pos, self.duration)
        return pos

    @property
    def paused(self):
        return self._started_at is None

    @property
    def ready_state(self):
        return self._ready_state

    def load(self, track):
        # Loading a new source resets playback, like assigning audio.src
        self._track = track
        self._offset = 0.0
        self._started_at = None
        self._ready_state = self.loaded_ready_state

    def seek(self, position):
        position = max(0.0, position)
        if self.duration is not None:
            position = min(position, self.duration)
        self._offset = position
        if self._started_at is not None:
            self._started_at = self.clock()
        if self.on_seeked:
            self.on_seeked(position)

    def play(self):
        if not self.autoplay_allowed:
            raise AutoplayBlocked("playback start requires a user gesture")
        if self._started_at is None:
            self._started_at = self.clock()

    def pause(self):
        if self._started_at is not None:
            self._offset = self.position
            self._started_at = None

    def allow_autoplay(self):
        self.autoplay_allowed = True

    def tick(self):
        """Fire `on_ended` once the track has played to its duration."""
        if self.duration is None or self.paused or self.position < self.duration:
            return
        self._offset = self.duration
        self._started_at = None
        if self.on_ended:
            self.on_ended()
