"""Record models for transcriptions stored in the key-value backend."""

import enum
from dataclasses import dataclass
from typing import Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TranscriptionStatus(str, enum.Enum):
    """Lifecycle marker of a transcription."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Transcription(BaseModel):
    """A stored transcription record.

    Serialized with camelCase keys (``ownerId``, ``createdAt``...) so the
    persisted layout stays flat and field-for-field with the record.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)

    # File info
    original_filename: str
    file_size_bytes: int = Field(..., ge=0)
    mime_type: str
    duration_seconds: Optional[float] = None

    # Result
    text: str
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    status: TranscriptionStatus

    # Timestamps
    created_at: AwareDatetime
    expires_at: AwareDatetime

    @model_validator(mode="after")
    def check_expiry_after_creation(self) -> "Transcription":
        if self.expires_at <= self.created_at:
            raise ValueError("expiresAt must be later than createdAt")
        return self


@dataclass(frozen=True)
class FileMeta:
    """Metadata of an uploaded audio file."""

    filename: str
    size_bytes: int
    mime_type: str
    duration_seconds: Optional[float] = None


@dataclass(frozen=True)
class TranscriptionPatch:
    """Mutable fields of a transcription. ``None`` leaves a field unchanged."""

    status: Optional[TranscriptionStatus] = None
    text: Optional[str] = None
    confidence: Optional[float] = None
