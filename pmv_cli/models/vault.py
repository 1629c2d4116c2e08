"""
Pydantic models mirroring the JSON shapes exchanged with the vault API.
"""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field

from pmv_cli.utils.formatting import format_duration


class APIErrorResponse(BaseModel):
    """Structured error body returned by the vault on non-200 responses."""

    code: str
    message: str


class SessionDuration(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Credentials(BaseModel):
    username: str
    password: str = Field(repr=False)
    duration: Optional[str] = None


class LoginResult(BaseModel):
    session_id: str = Field(repr=False)
    vault_fingerprint: Optional[str] = None


class MediaType(IntEnum):
    DELETED = 0
    IMAGE = 1
    VIDEO = 2
    AUDIO = 3

    def to_type_string(self) -> str:
        if self == MediaType.DELETED:
            return "N/A"
        return self.name.capitalize()


class MediaResolution(BaseModel):
    width: int
    height: int
    fps: Optional[int] = None
    ready: bool = False
    task: Optional[int] = None
    url: Optional[str] = None

    def matches(self, width: int, height: int, fps: int) -> bool:
        """Video resolutions only match with an fps; image resolutions only without."""
        own_fps = self.fps or 0
        if (fps > 0) != (own_fps > 0):
            return False
        return (
            self.width == width
            and self.height == height
            and (fps <= 0 or own_fps == fps)
        )


class MediaMetadata(BaseModel):
    """Metadata of a media asset. Only the fields this client uses are required."""

    id: int
    type: MediaType = MediaType.DELETED
    title: str = ""
    description: str = ""
    upload_time: int = 0
    thumbnail: str = ""
    tags: list[int] = Field(default_factory=list)
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None
    ready: bool = False
    ready_p: Optional[int] = None
    encoded: bool = False
    task: Optional[int] = None
    url: Optional[str] = None
    resolutions: list[MediaResolution] = Field(default_factory=list)


class MediaUploadResponse(BaseModel):
    media_id: int


class ThumbnailUpdateResponse(BaseModel):
    url: str


class Album(BaseModel):
    id: int
    name: str
    lm: int = 0
    thumbnail: Optional[str] = None


class TaskType(IntEnum):
    ENCODE_ORIGINAL = 0
    ENCODE_RESOLUTION = 1
    GENERATE_VIDEO_PREVIEWS = 2


class TaskStage(str, Enum):
    PENDING = ""
    PREPARE = "PREPARE"
    COPY = "COPY"
    PROBE = "PROBE"
    ENCODE = "ENCODE"
    ENCRYPT = "ENCRYPT"
    UPDATE = "UPDATE"
    FINISH = "FINISH"


# Stages are reported as "Stage N/7"; PENDING and PREPARE share the first slot
_STAGE_NUMBERS = {
    TaskStage.PENDING: 0,
    TaskStage.PREPARE: 0,
    TaskStage.COPY: 1,
    TaskStage.PROBE: 2,
    TaskStage.ENCODE: 3,
    TaskStage.ENCRYPT: 4,
    TaskStage.UPDATE: 5,
    TaskStage.FINISH: 6,
}


class TaskEncodeResolution(BaseModel):
    width: int
    height: int
    fps: int = 0

    def __str__(self) -> str:
        if self.fps > 0:
            return f"{self.width}x{self.height}:{self.fps}"
        return f"{self.width}x{self.height}"


class Task(BaseModel):
    id: int
    running: bool = False
    media_id: int
    type: TaskType
    resolution: Optional[TaskEncodeResolution] = None
    stage: TaskStage = TaskStage.PENDING
    stage_start: int = 0
    time_now: int = 0
    stage_progress: float = 0.0

    def type_string(self) -> str:
        label = self.type.name.replace("_", " ").capitalize()
        if self.type == TaskType.ENCODE_RESOLUTION and self.resolution:
            return f"{label}: {self.resolution}"
        return label

    def status_string(self) -> str:
        if not self.running or self.stage == TaskStage.PENDING:
            return "Pending"
        stage_number = _STAGE_NUMBERS[self.stage] + 1
        stage_name = self.stage.value.capitalize()
        if self.stage_progress > 0:
            return f"Stage {stage_number}/7: {stage_name} ({self.stage_progress:.2f}%)"
        return f"Stage {stage_number}/7: {stage_name}"

    def remaining_time_string(self) -> str:
        """Estimates the remaining time of the current stage from its progress."""
        if not self.running:
            return "N/A"
        if self.stage_progress <= 0 or self.time_now <= self.stage_start:
            return "Unknown"
        elapsed_ms = self.time_now - self.stage_start
        remaining_ms = (elapsed_ms * 100.0 / self.stage_progress) - elapsed_ms
        return format_duration(remaining_ms / 1000.0)
