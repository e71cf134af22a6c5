"""Upload orchestration: validate, transcribe, persist."""

import logging

from src.db.models import FileMeta, Transcription
from src.services.asr import TranscriptionProducer
from src.services.transcription_store import TranscriptionStore

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Turns an uploaded audio file into a stored transcription."""

    def __init__(self, store: TranscriptionStore, producer: TranscriptionProducer):
        self.store = store
        self.producer = producer

    async def transcribe_audio(
        self,
        owner_id: str,
        audio_data: bytes,
        filename: str,
        mime_type: str,
    ) -> Transcription:
        """
        Transcribe an upload and store the result.

        The upload is validated before the producer runs, and nothing is
        stored if the producer fails.

        Raises:
            ValidationError: If the upload is out of policy
            ProducerError: If transcription fails
        """
        file_meta = FileMeta(
            filename=filename,
            size_bytes=len(audio_data),
            mime_type=mime_type,
        )
        self.store.validate_file_meta(owner_id, file_meta)

        logger.info(f"Transcribing {filename} ({file_meta.size_bytes} bytes) for owner {owner_id}")

        result = await self.producer.transcribe(audio_data, filename, mime_type)

        return await self.store.create(owner_id, file_meta, result)
