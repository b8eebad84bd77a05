from __future__ import annotations

import argparse
import asyncio
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from acclms.core.config import get_settings
from acclms.core.logging import configure_logging
from acclms.services.partitions import (
    drop_event_partitions_before,
    list_event_partitions,
    partitions_before,
    retention_cutoff,
)


async def _run(cutoff: date, dry_run: bool) -> None:
    # Dropping partitions needs the table owner, so this uses the provisioning DSN.
    engine = create_async_engine(get_settings().provisioning_database_url())
    try:
        async with AsyncSession(engine) as session:
            if dry_run:
                expired = partitions_before(await list_event_partitions(session), cutoff)
                print(f"dry_run=true cutoff={cutoff.isoformat()} would_drop={','.join(expired) or '-'}")
                return
            dropped = await drop_event_partitions_before(session, cutoff)
            await session.commit()
            print(f"cutoff={cutoff.isoformat()} dropped_partitions={len(dropped)}")
    finally:
        await engine.dispose()


def main() -> None:
    # Parse CLI flags for analytics retention.
    parser = argparse.ArgumentParser(description="Drop analytics.events partitions beyond retention")
    parser.add_argument("--retention-months", type=int, default=None)
    parser.add_argument("--before", type=date.fromisoformat, default=None, help="explicit cutoff (YYYY-MM-DD)")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    configure_logging()
    cutoff = args.before or retention_cutoff(retention_months=args.retention_months)
    asyncio.run(_run(cutoff, args.dry_run))


if __name__ == "__main__":
    main()
