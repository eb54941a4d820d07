"""
Background worker: keeps challenge daily summaries in sync with the
time-tracking service. Runs until SIGINT/SIGTERM, letting the current poll
cycle finish first.
"""
import asyncio
import signal

from loguru import logger

from config import get_max_concurrent_refreshes
from database.db_session import init_db, get_session_factory
from helpers.logging_setup import configure_logging
from services.heartbeat_poller import HeartbeatPoller
from services.heartbeat_source import HeartbeatSource
from services.summary_client import SummaryClient
from services.summary_sync import DailySummarySynchronizer

configure_logging("challenge_worker")


async def main():
    await init_db()

    heartbeat_source = HeartbeatSource.from_config()
    summary_client = SummaryClient()
    synchronizer = DailySummarySynchronizer(
        summary_client,
        heartbeat_source.api_key_for_user,
        session_factory=get_session_factory(),
        request_limiter=asyncio.Semaphore(get_max_concurrent_refreshes())
    )
    poller = HeartbeatPoller(heartbeat_source, synchronizer, session_factory=get_session_factory())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, poller.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(poller.stop))

    try:
        await poller.run_forever()
    finally:
        await summary_client.close()
        await heartbeat_source.dispose()
        logger.info("Worker shut down")


if __name__ == "__main__":
    asyncio.run(main())
