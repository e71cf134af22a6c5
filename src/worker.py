"""Celery worker configuration and maintenance tasks."""

import asyncio
import logging

from celery import Celery, Task
from redis.exceptions import RedisError

from src.config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "transcription_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per sweep
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_default_queue="maintenance",
    task_routes={
        "src.worker.sweep_expired_transcriptions": {"queue": "maintenance"},
    },
    beat_schedule={
        "sweep-expired-transcriptions": {
            "task": "src.worker.sweep_expired_transcriptions",
            "schedule": settings.sweep_interval_seconds,
        },
    },
)


class BaseTask(Task):
    """Base task with retry configuration."""

    autoretry_for = (RedisError, OSError)
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    max_retries = 3


async def run_sweep() -> dict:
    """
    Run one expiry sweep against a freshly built backend.

    Returns:
        Dict with the number of deleted records and pruned index entries
    """
    from src.db.session import create_backend
    from src.services.sweeper import ExpirySweeper
    from src.services.transcription_store import TranscriptionStore

    backend = create_backend()
    try:
        sweeper = ExpirySweeper(TranscriptionStore.from_settings(backend))
        deleted = await sweeper.sweep()
        pruned = await sweeper.repair_indexes()
    finally:
        await backend.close()

    return {"deleted": deleted, "pruned": pruned}


@celery_app.task(bind=True, base=BaseTask, name="src.worker.sweep_expired_transcriptions")
def sweep_expired_transcriptions(self) -> dict:
    """Periodic task that deletes expired transcriptions."""
    result = asyncio.run(run_sweep())
    logger.info(
        f"Sweep finished: {result['deleted']} deleted, {result['pruned']} index entries pruned"
    )
    return result
