import os
import pytest
import sys
import tempfile
from pathlib import Path

# Add project root and the backend package dir to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "backend"))

# The server mounts its upload dir at import time, so point it somewhere disposable first
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="jammable-uploads-"))

# Hypothesis configuration for property-based testing
from hypothesis import settings

settings.register_profile("fast", max_examples=50, deadline=None)
settings.register_profile("thorough", max_examples=1000, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))

from app.services.broadcaster import StateBroadcaster
from app.services.room import RoomRegistry
from tests.mocks import ManualClock, make_sio


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def sio():
    return make_sio()


@pytest.fixture
def broadcaster(sio, registry):
    return StateBroadcaster(sio, registry)
