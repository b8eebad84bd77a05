from __future__ import annotations

import argparse
import asyncio
from datetime import date

from acclms.core.config import get_settings
from acclms.core.logging import configure_logging
from acclms.persistence.db import SessionLocal, engine
from acclms.services.partitions import ensure_event_partitions


async def _run(start: date | None, months_ahead: int) -> None:
    # Pre-create monthly analytics.events partitions so inserts never miss one.
    try:
        async with SessionLocal() as session:
            names = await ensure_event_partitions(session, start, months_ahead)
            await session.commit()
        print(f"ensured_partitions={len(names)} first={names[0] if names else '-'} last={names[-1] if names else '-'}")
    finally:
        await engine.dispose()


def main() -> None:
    # Parse CLI flags for partition pre-creation.
    parser = argparse.ArgumentParser(description="Create monthly analytics.events partitions")
    parser.add_argument("--start", type=date.fromisoformat, default=None, help="first month (YYYY-MM-DD)")
    parser.add_argument("--months-ahead", type=int, default=None)
    args = parser.parse_args()

    configure_logging()
    months_ahead = args.months_ahead
    if months_ahead is None:
        months_ahead = get_settings().analytics_partition_months_ahead
    asyncio.run(_run(args.start, months_ahead))


if __name__ == "__main__":
    main()
