"""Shared FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, status

from src.db.backend import KeyValueBackend
from src.db.session import get_backend
from src.services.asr import TranscriptionProducer, get_producer
from src.services.sweeper import ExpirySweeper
from src.services.transcription_service import TranscriptionService
from src.services.transcription_store import TranscriptionStore


def get_owner_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    """Owner of the request, taken from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing user ID. Provide it via the 'X-User-Id' header",
        )
    return x_user_id.strip()


def get_store(backend: KeyValueBackend = Depends(get_backend)) -> TranscriptionStore:
    return TranscriptionStore.from_settings(backend)


def get_transcription_service(
    store: TranscriptionStore = Depends(get_store),
    producer: TranscriptionProducer = Depends(get_producer),
) -> TranscriptionService:
    return TranscriptionService(store, producer)


def get_sweeper(store: TranscriptionStore = Depends(get_store)) -> ExpirySweeper:
    return ExpirySweeper(store)
