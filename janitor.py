import asyncio
import os
from typing import List, Optional

from backend import build_backend, now_ms
from constants import ROOM_TIMEOUT_MS, JANITOR_INTERVAL_SECONDS
from registry import RoomRegistry
from logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def sweep(registry: RoomRegistry, now: Optional[int] = None, timeout_ms: int = ROOM_TIMEOUT_MS) -> List[str]:
    """Delete every room created more than timeout_ms before now. Returns the removed ids.

    Rooms without a numeric createdAt are removed too; they can never age out otherwise.
    """
    now = now_ms() if now is None else now
    cutoff = now - timeout_ms
    rooms = await registry.list_rooms()

    removed = []
    for room_id, tree in rooms.items():
        created_at = tree.get("createdAt") if isinstance(tree, dict) else None
        if isinstance(created_at, (int, float)) and not isinstance(created_at, bool) and created_at >= cutoff:
            continue
        await registry.destroy(room_id)
        logger.info(f"Removed inactive room: {room_id}")
        removed.append(room_id)

    logger.info(f"Janitor sweep finished: removed {len(removed)} of {len(rooms)} rooms")
    return removed


async def run_periodically(registry: RoomRegistry, interval_seconds: float = JANITOR_INTERVAL_SECONDS):
    logger.info(f"Starting janitor loop, sweeping every {interval_seconds} seconds")
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await sweep(registry)
        except asyncio.CancelledError:
            logger.info("Janitor loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Janitor sweep failed: {e}", exc_info=True)


async def main():
    store = build_backend()
    try:
        await sweep(RoomRegistry(store))
    finally:
        await store.close()


def cli():
    setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE", None))
    asyncio.run(main())


if __name__ == "__main__":
    cli()
