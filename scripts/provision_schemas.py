from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import create_async_engine

from acclms.core.config import get_settings
from acclms.core.errors import ProvisioningError
from acclms.core.logging import configure_logging
from acclms.domain.registry import SCHEMAS
from acclms.persistence.provisioning import (
    PROVISIONING_MODES,
    build_provisioning_statements,
    build_teardown_statements,
    execute_statements,
    provision,
)


async def _run(mode: str, teardown: bool) -> int:
    # Provisioning needs a superuser connection; service roles cannot create roles or schemas.
    engine = create_async_engine(get_settings().provisioning_database_url())
    try:
        async with engine.begin() as connection:
            if teardown:
                applied = await execute_statements(connection, build_teardown_statements(SCHEMAS))
                print(f"teardown_statements={applied}")
            else:
                applied = await provision(connection, mode=mode)
                print(f"provisioned_schemas={len(SCHEMAS)} statements={applied}")
    finally:
        await engine.dispose()
    return 0


def main() -> int:
    # Parse CLI flags for schema/role provisioning.
    parser = argparse.ArgumentParser(description="Create per-service schemas, roles and grants")
    parser.add_argument("--mode", choices=PROVISIONING_MODES, default=None)
    parser.add_argument("--teardown", action="store_true", help="drop every service schema and role")
    parser.add_argument("--yes", action="store_true", help="confirm --teardown")
    parser.add_argument("--dry-run", action="store_true", help="print the plan without connecting")
    args = parser.parse_args()

    configure_logging()
    mode = args.mode or get_settings().provisioning_mode
    if args.teardown and not args.yes:
        print("--teardown drops all service data; pass --yes to confirm", file=sys.stderr)
        return 2
    try:
        if args.dry_run:
            # Passwords are part of the statements, so only the plan shape is printed.
            statements = build_teardown_statements(SCHEMAS) if args.teardown else build_provisioning_statements(
                SCHEMAS, mode=mode
            )
            for schema in SCHEMAS:
                print(f"schema={schema.name} role={schema.role} reads={','.join(schema.reads) or '-'}")
            print(f"statements={len(statements)} mode={'teardown' if args.teardown else mode}")
            return 0
        return asyncio.run(_run(mode, args.teardown))
    except ProvisioningError as exc:
        print(f"provision_schemas failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
