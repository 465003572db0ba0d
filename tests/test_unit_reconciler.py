"""Unit tests for the client-side DriftReconciler."""

import pytest

from app.client.player import HAVE_METADATA
from app.client.reconciler import DriftReconciler, expected_position
from app.models.room import PlaybackState
from tests.mocks import RecordingPlayer

TRACKS = ["a.mp3", "b.mp3", "c.mp3"]


def resolve(index):
    return TRACKS[index] if 0 <= index < len(TRACKS) else None


@pytest.fixture
def player(clock):
    return RecordingPlayer(clock)


@pytest.fixture
def reconciler(player, clock):
    return DriftReconciler(player, resolve, threshold=0.75, clock=clock.ms)


def state_at(clock, **kwargs):
    fields = {"trackIndex": 0, "isPlaying": False, "positionSeconds": 0.0, "lastUpdateEpochMs": clock.ms()}
    fields.update(kwargs)
    return PlaybackState(**fields)


def test_expected_position_adds_elapsed_time_when_playing(clock):
    state = state_at(clock, isPlaying=True, positionSeconds=12.3)
    clock.advance(2.0)

    assert expected_position(state, clock.ms()) == pytest.approx(14.3)


def test_expected_position_frozen_when_paused(clock):
    state = state_at(clock, isPlaying=False, positionSeconds=12.3)
    clock.advance(30)

    assert expected_position(state, clock.ms()) == 12.3


def test_expected_position_ignores_client_clock_behind_server(clock):
    state = state_at(clock, isPlaying=True, positionSeconds=10.0, lastUpdateEpochMs=clock.ms() + 5000)

    assert expected_position(state, clock.ms()) == 10.0


def test_late_joiner_seeks_to_expected_position(reconciler, player, clock):
    """Joining 2s after a play at 12.3 puts a fresh player at 14.3."""
    state = state_at(clock, isPlaying=True, positionSeconds=12.3)
    clock.advance(2.0)

    result = reconciler.reconcile(state)

    assert result.track_loaded is True
    assert result.drift == pytest.approx(14.3)
    assert result.seeked_to == pytest.approx(14.3)
    assert result.started is True
    assert player.position == pytest.approx(14.3)
    assert player.paused is False


def test_small_drift_is_left_alone(reconciler, player, clock):
    reconciler.load_track(0)
    player.seek(10.0)
    player.calls.clear()
    state = state_at(clock, positionSeconds=10.5)

    result = reconciler.reconcile(state)

    assert result.drift == pytest.approx(0.5)
    assert result.seeked_to is None
    assert ("seek", 10.5) not in player.calls


def test_no_seek_until_player_has_buffered(clock):
    player = RecordingPlayer(clock, ready_state=HAVE_METADATA)
    reconciler = DriftReconciler(player, resolve, clock=clock.ms)

    result = reconciler.reconcile(state_at(clock, positionSeconds=30.0))

    assert result.drift == pytest.approx(30.0)
    assert result.seeked_to is None
    assert player.position == 0.0


def test_track_switch_happens_before_seek(reconciler, player, clock):
    reconciler.load_track(0)
    player.calls.clear()

    reconciler.reconcile(state_at(clock, trackIndex=2, isPlaying=True, positionSeconds=20.0))

    assert player.calls[0] == ("load", "c.mp3")
    assert player.calls[1][0] == "seek"
    assert player.calls[2] == ("play",)
    assert reconciler.loaded_index == 2


def test_same_track_is_not_reloaded(reconciler, player, clock):
    reconciler.load_track(1)
    player.calls.clear()

    result = reconciler.reconcile(state_at(clock, trackIndex=1))

    assert result.track_loaded is False
    assert ("load", "b.mp3") not in player.calls


def test_out_of_range_track_skips_correction(reconciler, player, clock):
    result = reconciler.reconcile(state_at(clock, trackIndex=9, isPlaying=True, positionSeconds=50.0))

    assert result.track_missing is True
    assert player.calls == []
    assert reconciler.loaded_index is None


def test_out_of_range_track_stops_old_track(reconciler, player, clock):
    reconciler.reconcile(state_at(clock, trackIndex=0, isPlaying=True, positionSeconds=4.0))
    assert player.paused is False
    player.calls.clear()

    result = reconciler.reconcile(state_at(clock, trackIndex=5, isPlaying=False, positionSeconds=0.0))

    assert result.track_missing is True
    assert result.paused is True
    assert player.paused is True
    assert player.track == "a.mp3"
    assert player.calls == [("pause",)]


def test_pause_broadcast_pauses_local_player(reconciler, player, clock):
    reconciler.load_track(0)
    player.play()

    result = reconciler.reconcile(state_at(clock, isPlaying=False, positionSeconds=0.0))

    assert result.paused is True
    assert player.paused is True


def test_autoplay_rejection_is_reported_not_raised(clock):
    player = RecordingPlayer(clock, autoplay_allowed=False)
    reconciler = DriftReconciler(player, resolve, clock=clock.ms)

    result = reconciler.reconcile(state_at(clock, isPlaying=True, positionSeconds=5.0))

    assert result.autoplay_blocked is True
    assert result.started is False
    assert player.paused is True


def test_suppressed_seek_leaves_position(reconciler, player, clock):
    reconciler.load_track(0)
    player.seek(3.0)

    result = reconciler.reconcile(state_at(clock, positionSeconds=60.0), suppress_seek=True)

    assert result.seeked_to is None
    assert player.position == 3.0


def test_correction_is_flagged_while_seeking(reconciler, player, clock):
    seen = []
    player.on_seeked = lambda pos: seen.append(reconciler.applying_correction)

    reconciler.reconcile(state_at(clock, positionSeconds=42.0))

    assert seen == [True]
    assert reconciler.applying_correction is False


def test_second_reconcile_is_a_noop(reconciler, player, clock):
    state = state_at(clock, isPlaying=True, positionSeconds=12.3)
    clock.advance(2.0)
    reconciler.reconcile(state)
    player.calls.clear()

    clock.advance(1.5)
    result = reconciler.reconcile(state)

    assert result.drift <= 0.75
    assert result.seeked_to is None
    assert player.calls == []
