"""Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.db.models import Transcription


# ============== Transcription Schemas ==============


class TranscriptionResponse(BaseModel):
    """A stored transcription."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    original_filename: str
    file_size_bytes: int
    mime_type: str
    duration_seconds: Optional[float] = None
    text: str
    confidence: Optional[float] = None
    status: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_record(cls, record: Transcription) -> "TranscriptionResponse":
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            original_filename=record.original_filename,
            file_size_bytes=record.file_size_bytes,
            mime_type=record.mime_type,
            duration_seconds=record.duration_seconds,
            text=record.text,
            confidence=record.confidence,
            status=record.status.value,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )


class TranscriptionListResponse(BaseModel):
    """All transcriptions of the requesting user, newest first."""

    items: list[TranscriptionResponse]
    total: int


class TranscriptionUpdateRequest(BaseModel):
    """Fields of a transcription that may be changed after creation."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[Literal["pending", "processing", "completed", "failed"]] = Field(
        None, description="New lifecycle status"
    )
    text: Optional[str] = Field(None, description="Corrected transcription text")
    confidence: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Confidence score between 0 and 1"
    )


# ============== Maintenance Schemas ==============


class SweepResponse(BaseModel):
    """Result of an expiry sweep."""

    deleted: int
    pruned_index_entries: int
    swept_at: datetime


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    backend: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
