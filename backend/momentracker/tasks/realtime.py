from __future__ import annotations

import asyncio
import signal

from momentracker.application.container import (
    build_live_price_publisher,
    shutdown_live_price_publisher,
)
from momentracker.core.config import settings
from momentracker.core.logging import configure_logging


async def run_live_price_publisher() -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            continue

    publisher = build_live_price_publisher()
    await publisher.run(stop_event=stop_event)
    await shutdown_live_price_publisher()


def main() -> None:
    configure_logging(settings.log_level)
    asyncio.run(run_live_price_publisher())


if __name__ == "__main__":
    main()
