import asyncio
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TRACK_ACTIONS = ("change-song", "next", "prev")
TIME_ACTIONS = ("play", "pause", "seek")


class PlaybackState(BaseModel):
    # Wire format is the camelCase alias; python code uses the field names.
    model_config = ConfigDict(populate_by_name=True)

    track_index: int = Field(0, alias="trackIndex", ge=0)
    is_playing: bool = Field(False, alias="isPlaying")
    position_seconds: float = Field(0.0, alias="positionSeconds", ge=0)
    last_update_epoch_ms: int = Field(0, alias="lastUpdateEpochMs")  # Server time of the anchor

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ControlEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId")
    action: str
    index: Optional[int] = None
    current_time: Optional[float] = Field(None, alias="currentTime")

    @field_validator("room_id")
    @classmethod
    def strip_room_id(cls, v: str) -> str:
        # Same normalisation join-room applies
        return v.strip()


class Room(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    state: PlaybackState
    members: Dict[str, Optional[str]] = Field(default_factory=dict)  # sid -> identity
    created_at: float
    # Runtime-only exclusive guard for read-modify-write on state
    lock: asyncio.Lock = Field(default_factory=asyncio.Lock, exclude=True)
