"""Test doubles for the sync engine: a controllable clock, a call-recording
player and a stand-in for the Socket.IO server."""

from unittest.mock import AsyncMock, Mock

from app.client.player import SimulatedPlayer


class ManualClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def ms(self) -> int:
        return self.now_ms

    def seconds(self) -> float:
        return self.now_ms / 1000

    def advance(self, seconds: float):
        self.now_ms += int(round(seconds * 1000))


class RecordingPlayer(SimulatedPlayer):
    """SimulatedPlayer that remembers the order of operations performed on it."""

    def __init__(self, clock: ManualClock, **kwargs):
        super().__init__(clock=clock.seconds, **kwargs)
        self.calls = []

    def load(self, track):
        self.calls.append(("load", track))
        super().load(track)

    def seek(self, position):
        self.calls.append(("seek", position))
        super().seek(position)

    def play(self):
        self.calls.append(("play",))
        super().play()

    def pause(self):
        self.calls.append(("pause",))
        super().pause()


def make_sio():
    sio = Mock()
    sio.emit = AsyncMock()
    sio.enter_room = AsyncMock()
    sio.leave_room = AsyncMock()
    return sio
