"""Transcription record store over a key-value backend."""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Iterable, Optional
from uuid import uuid4

from src.config import DEFAULT_ALLOWED_MIME_TYPES, Settings, get_settings
from src.db.backend import KeyValueBackend
from src.db.codec import decode_index, decode_record, encode_index, encode_record
from src.db.keys import index_key, primary_key
from src.db.models import FileMeta, Transcription, TranscriptionPatch, TranscriptionStatus
from src.services.asr import TranscriptionResult
from src.services.errors import CorruptRecordError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 25 * 1024 * 1024


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptionStore:
    """
    CRUD, listing and expiry over transcription records.

    Each record lives under its own key; every owner has an index key holding
    the ordered ids of their records. The two keys are written one after the
    other without a transaction, so a failure between the writes can leave
    the index out of step with the records. Such failures are logged and the
    primary record wins.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        ttl_seconds: int = 86400,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        allowed_mime_types: Optional[Iterable[str]] = None,
        expiry_grace_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.backend = backend
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_file_size_bytes = max_file_size_bytes
        self.allowed_mime_types = frozenset(allowed_mime_types or DEFAULT_ALLOWED_MIME_TYPES)
        self.expiry_grace_seconds = expiry_grace_seconds
        self._clock = clock
        self._id_factory = id_factory

    @classmethod
    def from_settings(
        cls, backend: KeyValueBackend, settings: Optional[Settings] = None
    ) -> "TranscriptionStore":
        settings = settings or get_settings()
        return cls(
            backend,
            ttl_seconds=settings.transcription_ttl_seconds,
            max_file_size_bytes=settings.max_upload_size_bytes,
            allowed_mime_types=settings.allowed_mime_types,
            expiry_grace_seconds=settings.expiry_grace_seconds,
        )

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_file_meta(self, owner_id: str, file_meta: FileMeta) -> None:
        """
        Check an upload against the store's policy.

        Raises:
            ValidationError: Naming the first violated constraint.
        """
        if not owner_id:
            raise ValidationError("owner_id", "User ID is required")

        if not file_meta.filename:
            raise ValidationError("filename", "Filename is required")

        if not file_meta.mime_type:
            raise ValidationError("mime_type", "MIME type is required")

        if file_meta.size_bytes <= 0:
            raise ValidationError("file_size_bytes", "Audio file cannot be empty")

        if file_meta.size_bytes > self.max_file_size_bytes:
            limit_mb = self.max_file_size_bytes // (1024 * 1024)
            raise ValidationError(
                "file_size_bytes", f"File size exceeds maximum limit of {limit_mb}MB"
            )

        if file_meta.mime_type not in self.allowed_mime_types:
            raise ValidationError(
                "mime_type",
                f"Invalid file type '{file_meta.mime_type}'. "
                f"Allowed: {', '.join(sorted(self.allowed_mime_types))}",
            )

        if file_meta.duration_seconds is not None and file_meta.duration_seconds < 0:
            raise ValidationError("duration_seconds", "Duration cannot be negative")

    @staticmethod
    def _validate_confidence(confidence: Optional[float]) -> None:
        if confidence is None:
            return
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValidationError("confidence", "Confidence must be a number")
        if not 0.0 <= confidence <= 1.0:
            raise ValidationError("confidence", "Confidence must be between 0 and 1")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: str,
        file_meta: FileMeta,
        result: TranscriptionResult,
    ) -> Transcription:
        """
        Persist a finished transcription.

        Args:
            owner_id: Owner of the new record
            file_meta: Uploaded file metadata
            result: Output of the transcription producer

        Returns:
            The stored Transcription

        Raises:
            ValidationError: If any input is out of policy (nothing is written)
        """
        self.validate_file_meta(owner_id, file_meta)
        self._validate_confidence(result.confidence)

        created_at = self.now()
        record = Transcription(
            id=self._id_factory(),
            owner_id=owner_id,
            original_filename=file_meta.filename,
            file_size_bytes=file_meta.size_bytes,
            mime_type=file_meta.mime_type,
            duration_seconds=(
                result.duration_seconds
                if result.duration_seconds is not None
                else file_meta.duration_seconds
            ),
            text=result.text,
            confidence=result.confidence,
            status=TranscriptionStatus.COMPLETED,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )

        await self._write_record(record)

        try:
            await self._append_to_index(owner_id, record.id)
        except Exception as e:
            logger.error(
                f"Stored transcription {record.id} but failed to index it for owner {owner_id}: {e}"
            )

        logger.info(f"Created transcription {record.id} for owner {owner_id}")
        return record

    async def get(self, transcription_id: str) -> Transcription:
        """
        Get a transcription by ID.

        Raises:
            NotFoundError: If there is no record, or the stored record is corrupt
        """
        key = primary_key(transcription_id)
        raw = await self.backend.get(key)
        if raw is None:
            raise NotFoundError(transcription_id)

        try:
            return decode_record(raw, key)
        except CorruptRecordError as e:
            logger.warning(f"Treating corrupt transcription as missing: {e}")
            raise NotFoundError(transcription_id) from e

    async def list_by_owner(self, owner_id: str) -> list[Transcription]:
        """
        List an owner's transcriptions, newest first.

        Indexed ids whose record is missing or corrupt are skipped.
        """
        if not owner_id:
            raise ValidationError("owner_id", "User ID is required")

        transcriptions = []
        seen = set()
        for transcription_id in await self._read_index(owner_id):
            if transcription_id in seen:
                continue
            seen.add(transcription_id)

            try:
                transcriptions.append(await self.get(transcription_id))
            except NotFoundError:
                logger.debug(f"Skipping indexed transcription {transcription_id}: not found")

        # sorted() is stable, so equal timestamps keep index order
        return sorted(transcriptions, key=lambda t: t.created_at, reverse=True)

    async def update(self, transcription_id: str, patch: TranscriptionPatch) -> Transcription:
        """
        Change the status, text or confidence of a transcription.

        All other fields are carried over from the stored record.

        Raises:
            NotFoundError: If the transcription does not exist
            ValidationError: If the patch holds an invalid value
        """
        existing = await self.get(transcription_id)

        changes = {}
        if patch.status is not None:
            try:
                changes["status"] = TranscriptionStatus(patch.status)
            except ValueError:
                raise ValidationError("status", f"Unknown status '{patch.status}'") from None
        if patch.text is not None:
            if not isinstance(patch.text, str):
                raise ValidationError("text", "Text must be a string")
            changes["text"] = patch.text
        if patch.confidence is not None:
            self._validate_confidence(patch.confidence)
            changes["confidence"] = patch.confidence

        updated = existing.model_copy(update=changes)
        await self._write_record(updated)

        logger.info(f"Updated transcription {transcription_id}: {sorted(changes)}")
        return updated

    async def delete(self, transcription_id: str) -> None:
        """
        Delete a transcription and drop it from its owner's index.

        Raises:
            NotFoundError: If the transcription does not exist
        """
        existing = await self.get(transcription_id)

        await self.backend.delete(primary_key(transcription_id))

        try:
            await self._remove_from_index(existing.owner_id, transcription_id)
        except Exception as e:
            logger.error(
                f"Deleted transcription {transcription_id} but failed to update "
                f"index for owner {existing.owner_id}: {e}"
            )

        logger.info(f"Deleted transcription {transcription_id}")

    # ------------------------------------------------------------------
    # Index helpers
    # ------------------------------------------------------------------

    async def _read_index(self, owner_id: str) -> list[str]:
        key = index_key(owner_id)
        raw = await self.backend.get(key)
        if raw is None:
            return []

        try:
            return decode_index(raw, key)
        except CorruptRecordError as e:
            logger.warning(f"Treating corrupt owner index as empty: {e}")
            return []

    async def _write_index(self, owner_id: str, transcription_ids: list[str]) -> None:
        key = index_key(owner_id)
        if transcription_ids:
            await self.backend.put(key, encode_index(transcription_ids))
        else:
            await self.backend.delete(key)

    async def _append_to_index(self, owner_id: str, transcription_id: str) -> None:
        transcription_ids = await self._read_index(owner_id)
        if transcription_id not in transcription_ids:
            transcription_ids.append(transcription_id)
        await self._write_index(owner_id, transcription_ids)

    async def _remove_from_index(self, owner_id: str, transcription_id: str) -> None:
        transcription_ids = await self._read_index(owner_id)
        if transcription_id not in transcription_ids:
            return
        await self._write_index(
            owner_id, [t for t in transcription_ids if t != transcription_id]
        )

    async def prune_index(
        self, owner_id: str, keep: Callable[[str], Awaitable[bool]]
    ) -> int:
        """Rewrite an owner's index keeping only ids accepted by keep. Returns ids removed."""
        transcription_ids = await self._read_index(owner_id)
        kept = [t for t in transcription_ids if await keep(t)]
        removed = len(transcription_ids) - len(kept)
        if removed:
            await self._write_index(owner_id, kept)
        return removed

    # ------------------------------------------------------------------
    # Record helpers
    # ------------------------------------------------------------------

    def _backend_ttl(self, record: Transcription) -> Optional[int]:
        if self.expiry_grace_seconds is None:
            return None
        remaining = (record.expires_at - self.now()).total_seconds()
        return max(math.ceil(remaining) + self.expiry_grace_seconds, 1)

    async def _write_record(self, record: Transcription) -> None:
        await self.backend.put(
            primary_key(record.id),
            encode_record(record),
            ttl_seconds=self._backend_ttl(record),
        )
