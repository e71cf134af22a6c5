"""Script to run the expiry sweep once, outside of Celery beat."""

import asyncio
import sys

sys.path.insert(0, ".")

from src.config import get_settings
from src.worker import run_sweep


async def main():
    """Sweep expired transcriptions and repair owner indexes."""
    settings = get_settings()
    print(f"Sweeping expired transcriptions ({settings.storage_backend} backend)...")

    result = await run_sweep()

    print("\n" + "=" * 60)
    print("SWEEP COMPLETE")
    print("=" * 60)
    print(f"\nDeleted transcriptions: {result['deleted']}")
    print(f"Pruned index entries:   {result['pruned']}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
