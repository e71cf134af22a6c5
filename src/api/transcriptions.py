"""Transcription API routes."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from src.api.dependencies import get_owner_id, get_store, get_transcription_service
from src.config import get_settings
from src.db.models import TranscriptionPatch, TranscriptionStatus
from src.middleware.rate_limit import rate_limit_general, rate_limit_uploads
from src.schemas.schemas import (
    TranscriptionListResponse,
    TranscriptionResponse,
    TranscriptionUpdateRequest,
)
from src.services.errors import NotFoundError, ProducerError, ValidationError
from src.services.transcription_service import TranscriptionService
from src.services.transcription_store import TranscriptionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/transcriptions", tags=["Transcriptions"])

settings = get_settings()


@router.post(
    "",
    response_model=TranscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transcribe an audio file",
    description="Upload an audio file, transcribe it and store the result.",
)
@rate_limit_uploads()
async def create_transcription(
    request: Request,
    file: UploadFile = File(..., description="Audio file"),
    owner_id: str = Depends(get_owner_id),
    service: TranscriptionService = Depends(get_transcription_service),
):
    """
    Transcribe an uploaded audio file.

    - **file**: mp3, wav, m4a, ogg or webm audio, at most 25MB
    - **X-User-Id** header: owner of the new transcription
    """
    # One byte past the limit is enough to reject oversized uploads
    audio_data = await file.read(settings.max_upload_size_bytes + 1)

    try:
        transcription = await service.transcribe_audio(
            owner_id=owner_id,
            audio_data=audio_data,
            filename=file.filename or "",
            mime_type=file.content_type or "",
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from None
    except ProducerError as e:
        logger.error(f"Transcription failed for {file.filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Transcription failed: {e}",
        ) from None

    return TranscriptionResponse.from_record(transcription)


@router.get(
    "",
    response_model=TranscriptionListResponse,
    summary="List transcriptions",
    description="List all transcriptions of the requesting user, newest first.",
)
@rate_limit_general()
async def list_transcriptions(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    store: TranscriptionStore = Depends(get_store),
):
    """List transcriptions for the user in the X-User-Id header."""
    transcriptions = await store.list_by_owner(owner_id)

    return TranscriptionListResponse(
        items=[TranscriptionResponse.from_record(t) for t in transcriptions],
        total=len(transcriptions),
    )


@router.get(
    "/{transcription_id}",
    response_model=TranscriptionResponse,
    summary="Get a transcription",
)
async def get_transcription(
    transcription_id: str,
    store: TranscriptionStore = Depends(get_store),
):
    """Get a single transcription by ID."""
    try:
        transcription = await store.get(transcription_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transcription {transcription_id} not found",
        ) from None

    return TranscriptionResponse.from_record(transcription)


@router.patch(
    "/{transcription_id}",
    response_model=TranscriptionResponse,
    summary="Update a transcription",
    description="Change the status, text or confidence of a transcription.",
)
async def update_transcription(
    transcription_id: str,
    request: TranscriptionUpdateRequest,
    store: TranscriptionStore = Depends(get_store),
):
    """
    Update a transcription.

    - **status**: pending, processing, completed or failed
    - **text**: corrected transcription text
    - **confidence**: score between 0 and 1

    Any other field in the body is ignored.
    """
    patch = TranscriptionPatch(
        status=TranscriptionStatus(request.status) if request.status else None,
        text=request.text,
        confidence=request.confidence,
    )

    try:
        transcription = await store.update(transcription_id, patch)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transcription {transcription_id} not found",
        ) from None
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        ) from None

    return TranscriptionResponse.from_record(transcription)


@router.delete(
    "/{transcription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a transcription",
)
async def delete_transcription(
    transcription_id: str,
    store: TranscriptionStore = Depends(get_store),
):
    """Delete a transcription and remove it from its owner's list."""
    try:
        await store.delete(transcription_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transcription {transcription_id} not found",
        ) from None
