"""Runtime entrypoint for the booking HTTP API."""
import argparse
import asyncio
import logging
import sys

import uvicorn

from spa_booking.app.core.constants import LOG_LEVEL_NAME
from spa_booking.app.core.logger import configure_logging

logger = logging.getLogger("spa_booking")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Spa booking API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the schema from the ORM metadata before serving (development only)",
    )
    return parser


async def prepare_database(init_schema: bool) -> None:
    """Optionally create tables and seed the demo center (RUN_BOOTSTRAP)."""
    from spa_booking.app.core.bootstrap import seed_demo_center
    from spa_booking.app.core.db import dispose_engine, init_db

    try:
        if init_schema:
            await init_db()
            logger.info("Database schema created")
        if await seed_demo_center():
            logger.info("[bootstrap] Completed")
    finally:
        # The serving loop must not reuse connections from this one
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(LOG_LEVEL_NAME)

    asyncio.run(prepare_database(args.init_db))

    from spa_booking.api.app import get_app

    logger.info("Serving API on %s:%d", args.host, args.port)
    uvicorn.run(get_app(), host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
