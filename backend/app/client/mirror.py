import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from app import config
from app.client.player import AutoplayBlocked
from app.client.reconciler import DriftReconciler, Reconciliation
from app.models.room import PlaybackState

logger = logging.getLogger(__name__)


class MirrorPhase(str, Enum):
    IDLE = "idle"
    JOINED = "joined"
    SYNCED = "synced"


class ClientMirror:
    """
    Client-side copy of a room's PlaybackState. Every broadcast is handed to
    the reconciler; while the user scrubs, forced seeks are held back and the
    chosen position goes upstream through `commit_seek` once the gesture has
    settled for `debounce_ms`.
    """

    def __init__(self, reconciler: DriftReconciler, commit_seek: Callable[[float], None],
                 debounce_ms: int = config.SEEK_DEBOUNCE_MS):
        self.reconciler = reconciler
        self.commit_seek = commit_seek
        self.debounce_ms = debounce_ms
        self.phase = MirrorPhase.IDLE
        self.room_id: Optional[str] = None
        self.state: Optional[PlaybackState] = None
        self.user_seeking = False
        self.autoplay_blocked = False
        self._debounce: Optional[asyncio.TimerHandle] = None

        reconciler.player.on_seeked = self.on_player_seeked

    @property
    def player(self):
        return self.reconciler.player

    def joined(self, room_id: str):
        self.reset()
        self.room_id = room_id
        self.phase = MirrorPhase.JOINED

    def reset(self):
        self._cancel_debounce()
        self.phase = MirrorPhase.IDLE
        self.room_id = None
        self.state = None
        self.user_seeking = False
        self.autoplay_blocked = False

    def apply(self, state: PlaybackState) -> Optional[Reconciliation]:
        if self.phase == MirrorPhase.IDLE:
            logger.debug("Ignoring state broadcast while not joined")
            return None

        self.state = state
        self.phase = MirrorPhase.SYNCED
        result = self.reconciler.reconcile(state, suppress_seek=self.user_seeking)
        if result.autoplay_blocked:
            self.autoplay_blocked = True
        elif result.started or not state.is_playing:
            self.autoplay_blocked = False
        return result

    def retry_playback(self) -> bool:
        """Called on a user gesture; starts playback the platform refused earlier."""
        if not (self.state and self.state.is_playing and self.player.paused):
            return False
        try:
            self.player.play()
        except AutoplayBlocked:
            logger.warning("Auto-play still blocked")
            return False
        self.autoplay_blocked = False
        return True

    # Scrub gesture

    def begin_scrub(self):
        self._cancel_debounce()
        self.user_seeking = True

    def scrub_to(self, position: float):
        # Moving again restarts the gesture, dropping any pending commit
        self.begin_scrub()
        self.player.seek(position)

    def end_scrub(self):
        if not self.user_seeking:
            return
        self._cancel_debounce()
        loop = asyncio.get_running_loop()
        self._debounce = loop.call_later(self.debounce_ms / 1000, self._finish_scrub)

    def _finish_scrub(self):
        self._debounce = None
        self.user_seeking = False
        self.commit_seek(self.player.position)

    def _cancel_debounce(self):
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def on_player_seeked(self, position: float):
        # Our own drift correction and in-progress scrubs are not discrete user seeks
        if self.reconciler.applying_correction or self.user_seeking:
            return
        if self.phase != MirrorPhase.SYNCED:
            return
        if not self.player.paused or position > 0:
            self.commit_seek(position)
