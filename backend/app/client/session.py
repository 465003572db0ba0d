import asyncio
import logging
from typing import List, Optional

import httpx
import socketio
from pydantic import ValidationError

from app.client.mirror import ClientMirror, MirrorPhase
from app.client.player import AudioPlayer
from app.client.reconciler import DriftReconciler
from app.models.room import PlaybackState

logger = logging.getLogger(__name__)


class SyncClient:
    """
    One listener in a room: joins over Socket.IO, reconciles the local player
    against every `sync-state` broadcast and sends the user's actions upstream
    as control events.
    """

    def __init__(self, base_url: str, player: AudioPlayer, sio: socketio.AsyncClient = None,
                 http: httpx.AsyncClient = None):
        self.base_url = base_url.rstrip("/")
        self.sio = sio or socketio.AsyncClient()
        self.http = http or httpx.AsyncClient(base_url=self.base_url)
        self.tracks: List[str] = []
        self.reconciler = DriftReconciler(player, self._resolve_track)
        self.mirror = ClientMirror(self.reconciler, self._commit_seek)
        self.identity: Optional[str] = None
        self._pending = set()

        player.on_ended = self.on_track_ended
        self.sio.on("sync-state", self._on_sync_state)
        self.sio.on("error", self._on_error)
        self.sio.on("disconnect", self._on_disconnect)

    @property
    def player(self) -> AudioPlayer:
        return self.reconciler.player

    @property
    def room_id(self) -> Optional[str]:
        return self.mirror.room_id

    @property
    def current_index(self) -> int:
        index = self.reconciler.loaded_index
        return index if index is not None else 0

    def _resolve_track(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.tracks):
            return self.tracks[index]
        return None

    # Connection

    async def connect(self):
        await self.sio.connect(self.base_url)

    async def disconnect(self):
        await self.sio.disconnect()
        self.mirror.reset()
        await self.http.aclose()

    async def join(self, room_id: str, identity: str = None):
        room_id = (room_id or "").strip()
        if not room_id:
            raise ValueError("room id is required")
        self.identity = identity
        await self.refresh_tracks()
        self.mirror.joined(room_id)
        await self.sio.emit("join-room", (room_id, identity))
        logger.info(f"Joined room: {room_id}")

    async def refresh_tracks(self) -> List[str]:
        response = await self.http.get("/songs")
        response.raise_for_status()
        self.tracks = response.json()
        if self.tracks and self.reconciler.loaded_index is None:
            self.reconciler.load_track(0)
        return self.tracks

    # Incoming

    async def _on_sync_state(self, data):
        try:
            state = PlaybackState.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed sync-state: {e}")
            return
        self.mirror.apply(state)

    async def _on_error(self, data):
        message = data.get("message") if isinstance(data, dict) else data
        logger.warning(f"Server error: {message}")

    async def _on_disconnect(self, *args):
        logger.info("Disconnected from server")
        self.mirror.reset()

    # Outgoing

    def _can_control(self) -> bool:
        return self.mirror.phase != MirrorPhase.IDLE and bool(self.tracks)

    async def send_control(self, action: str, current_time: float = None, index: int = None):
        if not self._can_control():
            logger.debug(f"Not sending {action}: not joined or no tracks")
            return
        if current_time is None:
            current_time = self.player.position
        if index is None:
            index = self.current_index
        await self.sio.emit("control", {
            "roomId": self.room_id,
            "action": action,
            "index": index,
            "currentTime": current_time,
        })

    def _commit_seek(self, position: float):
        task = asyncio.ensure_future(self.send_control("seek", position))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def toggle_play(self):
        if self.player.paused:
            await self.play()
        else:
            await self.pause()

    async def play(self):
        # A play press is a user gesture, the moment to retry a blocked start
        self.mirror.retry_playback()
        await self.send_control("play", self.player.position)

    async def pause(self):
        await self.send_control("pause", self.player.position)

    async def change_song(self, index: int, action: str = "change-song"):
        if not self._can_control():
            return
        # Optimistic; the broadcast that follows is what actually counts
        self.reconciler.load_track(index)
        await self.send_control(action, 0, index)

    async def next(self):
        if self.tracks:
            await self.change_song((self.current_index + 1) % len(self.tracks), "next")

    async def prev(self):
        if self.tracks:
            await self.change_song((self.current_index - 1) % len(self.tracks), "prev")

    def on_track_ended(self):
        task = asyncio.ensure_future(self.next())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # Scrubbing

    def begin_scrub(self):
        self.mirror.begin_scrub()

    def scrub_to(self, position: float):
        self.mirror.scrub_to(position)

    def end_scrub(self):
        self.mirror.end_scrub()
