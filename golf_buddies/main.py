from __future__ import annotations

import asyncio
import logging

from .app import GolfBuddiesApp
from .commands.register import build_parser, run_command
from .config import load_settings
from .errors import GolfBuddiesError
from .logging_config import setup_logging


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log = setup_logging(logging.WARNING)
    settings = load_settings()
    try:
        app = GolfBuddiesApp.create(settings)
    except GolfBuddiesError as exc:
        log.error("%s", exc.message)
        return 2

    async def runner() -> int:
        try:
            return await run_command(app, args)
        finally:
            await app.aclose()

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        log.info("Shutting down...")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
