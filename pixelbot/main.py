from __future__ import annotations

import asyncio
import contextlib
import logging

from pixelbot.config import CLIENT_CONFIG, ConfigError, load_config, parse_chunk_list
from pixelbot.core import ConnectionState
from pixelbot.session import CanvasSession
from shared.protocol.messages import PixelChangeEvent

logger = logging.getLogger("pixelbot")


def _log_pixel(event: PixelChangeEvent) -> None:
    logger.info(
        "Pixel changed in chunk %s at (%s, %s): %s",
        event.chunk,
        event.offset.x,
        event.offset.y,
        event.color.name,
    )


def _log_status(state: ConnectionState) -> None:
    logger.debug("Connection is %s", state.value)


async def run_client() -> None:
    load_config()
    logging.basicConfig(
        level=CLIENT_CONFIG["log_level"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not CLIENT_CONFIG["fingerprint"]:
        raise ConfigError("PIXELBOT_FINGERPRINT is required")
    chunks = parse_chunk_list(CLIENT_CONFIG["watch_chunks"])

    async with CanvasSession() as session:
        session.on_pixel_changed(_log_pixel)
        session.on_status_changed(_log_status)
        for chunk in chunks:
            session.subscribe(chunk)
        await asyncio.Event().wait()


def main() -> None:
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_client())


if __name__ == "__main__":
    main()
