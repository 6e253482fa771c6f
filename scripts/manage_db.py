from __future__ import annotations

import argparse
import asyncio
import json

from chainwatch.config.settings import settings
from chainwatch.core.logging import configure_logging
from chainwatch.db.database import create_database, wait_for_database
from chainwatch.db.seed import seed_database


async def run(command: str, timeout: float) -> int:
    db = create_database(settings.database_config())
    try:
        if command == "info":
            print(json.dumps(await db.get_info(), indent=2))
        elif command == "init":
            await db.init_schema()
        elif command == "reset":
            await db.reset_schema()
        elif command == "seed":
            await db.init_schema()
            print(json.dumps(await seed_database(db, settings.environment), indent=2))
        elif command == "wait":
            return 0 if await wait_for_database(db, timeout=timeout, interval=settings.retry_delay_seconds or 1.0) else 1
        return 0
    finally:
        await db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage the test report database")
    parser.add_argument("command", choices=["info", "init", "reset", "seed", "wait"])
    parser.add_argument("--timeout", type=float, default=30.0, help="seconds to wait for the database")
    args = parser.parse_args()
    configure_logging(settings.LOG_LEVEL)
    raise SystemExit(asyncio.run(run(args.command, args.timeout)))


if __name__ == "__main__":
    main()
