"""Expiry sweeper: evicts expired transcriptions and repairs owner indexes."""

import logging
from datetime import datetime, timezone
from typing import Optional

from src.db.codec import decode_record
from src.db.keys import (
    INDEX_PREFIX,
    PRIMARY_PREFIX,
    id_from_primary_key,
    owner_from_index_key,
    primary_key,
)
from src.services.errors import CorruptRecordError, NotFoundError
from src.services.transcription_store import TranscriptionStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Scans the primary key space and deletes expired records through the store.

    A failure on one key is logged and the sweep moves on. Running the sweeper
    twice in a row is safe: the second pass finds nothing left to delete.
    """

    def __init__(self, store: TranscriptionStore):
        self.store = store
        self.backend = store.backend

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Delete every transcription whose expiry time has passed.

        Args:
            now: Reference time (defaults to the store clock). A naive
                datetime is taken to be UTC.

        Returns:
            Number of transcriptions deleted
        """
        now = now or self.store.now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        deleted = 0

        for key in await self.backend.scan_keys_by_prefix(PRIMARY_PREFIX):
            try:
                raw = await self.backend.get(key)
                if raw is None:
                    continue

                record = decode_record(raw, key)
                if record.expires_at >= now:
                    continue

                await self.store.delete(id_from_primary_key(key))
                deleted += 1
            except NotFoundError:
                logger.debug(f"{key} disappeared during sweep")
            except CorruptRecordError as e:
                logger.warning(f"Skipping corrupt record during sweep: {e}")
            except Exception as e:
                logger.error(f"Error checking expiration for {key}: {e}")

        logger.info(f"Expiry sweep deleted {deleted} transcription(s)")
        return deleted

    async def repair_indexes(self) -> int:
        """
        Drop owner index entries whose record no longer exists.

        Records can vanish without passing through the store, for example when
        the backend's own TTL fires before a sweep. Returns the number of ids
        removed across all indexes.
        """
        live_ids = {
            id_from_primary_key(key)
            for key in await self.backend.scan_keys_by_prefix(PRIMARY_PREFIX)
        }

        async def still_exists(transcription_id: str) -> bool:
            if transcription_id in live_ids:
                return True
            # Created after the scan above
            return await self.backend.get(primary_key(transcription_id)) is not None

        pruned = 0
        for key in await self.backend.scan_keys_by_prefix(INDEX_PREFIX):
            try:
                pruned += await self.store.prune_index(owner_from_index_key(key), still_exists)
            except Exception as e:
                logger.error(f"Error repairing index {key}: {e}")

        if pruned:
            logger.info(f"Pruned {pruned} dangling index entr{'y' if pruned == 1 else 'ies'}")
        return pruned
