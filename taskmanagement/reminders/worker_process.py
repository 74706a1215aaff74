#!/usr/bin/env python3
"""
Standalone overdue-scanner process.

Runs only the scanner loop and publishes reminders to RabbitMQ; the API process
consumes them and pushes to connected clients. Use this when the scanner should
not live inside the web server:

    python -m taskmanagement.reminders.worker_process
"""

import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from taskmanagement.core.logging_setup import configure_logging  # noqa: E402
from taskmanagement.reminders.pipeline import ReminderPipeline  # noqa: E402

logger = logging.getLogger(__name__)


async def run_scanner_process() -> None:
    pipeline = ReminderPipeline(run_scanner=True, run_dispatcher=False)
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
            pass

    await pipeline.start()
    try:
        await stop_requested.wait()
    finally:
        logger.info("🛑 Shutdown requested - stopping scanner")
        await pipeline.stop()


def main():
    """Main entry point for the scanner worker process"""
    configure_logging(log_file="worker.log")
    logger.info("🚀 Starting Task Management overdue scanner process")
    try:
        asyncio.run(run_scanner_process())
    except KeyboardInterrupt:
        logger.info("🛑 Worker process shutdown requested")
    except Exception as e:
        logger.error(f"❌ Worker process error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("👋 Worker process terminated")


if __name__ == "__main__":
    main()
