# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Standalone worker process: outbox relay, consumer and expiry sweep.

Runs the loops without the HTTP surface until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal

from beartype import beartype

from ..container import ServiceContainer, build_container
from ..core.config import get_settings
from ..core.logging_utils import configure_logging

logger = logging.getLogger(__name__)


async def run_workers(
    container: ServiceContainer, stop_event: asyncio.Event | None = None
) -> None:
    """Run every worker until ``stop_event`` is set."""
    stop_event = stop_event or asyncio.Event()
    await container.startup()
    workers = container.build_workers()
    for worker in workers:
        worker.start()
    try:
        await stop_event.wait()
    finally:
        for worker in workers:
            await worker.stop()
        await container.shutdown()


async def _serve() -> None:
    container = build_container(get_settings())
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    await run_workers(container, stop_event)


@beartype
def main() -> None:
    """Entry point for ``lifeshield-worker``."""
    settings = get_settings()
    configure_logging(level=settings.log_level)
    logger.info(f"Starting workers for queue {settings.queue_name}")
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
