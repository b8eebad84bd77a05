"""Schema-per-service provisioning.

Builds the ordered SQL that creates one schema and one least-privilege login
role per bounded context, grants each role full access to its own schema plus
read-only access to the schemas it references and EXECUTE on the functions
it declares, hardens ``public`` and installs the shared
``update_updated_at_column()`` trigger function.

Two modes keep re-runs safe:

* ``reset``: drop existing service roles (``DROP OWNED BY ... CASCADE``) and
  recreate them. Destructive to grants, never to tables; meant for dev.
* ``preserve``: create roles only when missing and re-assert their attributes.
  Nothing is dropped; meant for shared and production databases.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncConnection

from acclms.core.config import get_settings
from acclms.core.errors import ProvisioningError
from acclms.domain.registry import SCHEMAS, ServiceSchema


logger = logging.getLogger(__name__)

PROVISIONING_MODE_RESET = "reset"
PROVISIONING_MODE_PRESERVE = "preserve"
PROVISIONING_MODES = (PROVISIONING_MODE_RESET, PROVISIONING_MODE_PRESERVE)

EXTENSIONS = ("uuid-ossp", "pgcrypto")

_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
# schema.name(argtype, ...); argument types may be schema-qualified.
_FUNCTION_RE = re.compile(r"^([a-z_][a-z0-9_]*)\.[a-z_][a-z0-9_]*\((?:[a-z_][a-z0-9_.]*(?:, [a-z_][a-z0-9_.]*)*)?\)$")

UPDATED_AT_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION public.update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql
""".strip()


def validate_identifier(name: str) -> str:
    # Identifiers are interpolated into DDL, so only plain lowercase names pass.
    if not _IDENTIFIER_RE.match(name):
        raise ProvisioningError(f"invalid SQL identifier: {name!r}")
    return name


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def default_password_for(role: str) -> str:
    return get_settings().service_role_password_template.format(role=role)


def _role_attributes(connection_limit: int) -> str:
    return f"LOGIN NOCREATEDB NOCREATEROLE NOSUPERUSER CONNECTION LIMIT {int(connection_limit)}"


def _reset_role(role: str, password: str, connection_limit: int) -> list[str]:
    drop_block = f"""
DO $$
BEGIN
    IF EXISTS (SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(role)}) THEN
        EXECUTE 'DROP OWNED BY {role} CASCADE';
        EXECUTE 'DROP ROLE {role}';
    END IF;
END
$$
""".strip()
    create = f"CREATE ROLE {role} WITH {_role_attributes(connection_limit)} PASSWORD {quote_literal(password)}"
    return [drop_block, create]


def _upsert_role(role: str, password: str, connection_limit: int) -> list[str]:
    create_block = f"""
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(role)}) THEN
        CREATE ROLE {role} WITH LOGIN;
    END IF;
END
$$
""".strip()
    alter = f"ALTER ROLE {role} WITH {_role_attributes(connection_limit)} PASSWORD {quote_literal(password)}"
    return [create_block, alter]


def _own_schema_grants(schema: str, role: str) -> list[str]:
    return [
        f"GRANT USAGE ON SCHEMA {schema} TO {role}",
        f"GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA {schema} TO {role}",
        f"GRANT ALL PRIVILEGES ON ALL SEQUENCES IN SCHEMA {schema} TO {role}",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON TABLES TO {role}",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON SEQUENCES TO {role}",
    ]


def _read_grants(target: str, role: str) -> list[str]:
    # SELECT only: foreign schemas are read for reference validation, never written.
    return [
        f"GRANT USAGE ON SCHEMA {target} TO {role}",
        f"GRANT SELECT ON ALL TABLES IN SCHEMA {target} TO {role}",
        f"ALTER DEFAULT PRIVILEGES IN SCHEMA {target} GRANT SELECT ON TABLES TO {role}",
    ]


def validate_function_signature(signature: str, schema: str) -> str:
    match = _FUNCTION_RE.match(signature)
    if match is None:
        raise ProvisioningError(f"invalid function signature: {signature!r}")
    if match.group(1) != schema:
        raise ProvisioningError(f"{schema} cannot grant {signature} from another schema")
    return signature


def function_grant_statements(schema: ServiceSchema) -> list[str]:
    """EXECUTE grants for the functions ``schema`` declares.

    Each statement is a no-op while the function does not exist yet, so the
    same list runs before migrations (provisioning) and right after the
    migration that defines the function. Re-running it after a ``reset``
    restores what ``DROP OWNED BY`` removed.
    """
    statements: list[str] = []
    for signature in schema.functions:
        validate_function_signature(signature, schema.name)
        statements.append(
            f"""
DO $$
BEGIN
    IF to_regprocedure({quote_literal(signature)}) IS NOT NULL THEN
        EXECUTE 'REVOKE ALL ON FUNCTION {signature} FROM PUBLIC';
        EXECUTE 'GRANT EXECUTE ON FUNCTION {signature} TO {schema.role}';
    END IF;
END
$$
""".strip()
        )
    return statements


def _check_registry(registry: Sequence[ServiceSchema]) -> None:
    names = {schema.name for schema in registry}
    if len(names) != len(registry):
        raise ProvisioningError("duplicate schema names in registry")
    for schema in registry:
        validate_identifier(schema.name)
        validate_identifier(schema.role)
        for target in schema.reads:
            if target not in names:
                raise ProvisioningError(f"{schema.name} reads unknown schema {target}")
            if target == schema.name:
                raise ProvisioningError(f"{schema.name} lists itself as a foreign read")
        for signature in schema.functions:
            validate_function_signature(signature, schema.name)


def build_provisioning_statements(
    registry: Sequence[ServiceSchema] = SCHEMAS,
    *,
    mode: str = PROVISIONING_MODE_RESET,
    password_for: Callable[[str], str] = default_password_for,
    connection_limit: int | None = None,
) -> list[str]:
    """Return the ordered, individually executable provisioning statements.

    Every statement is safe to run again: schemas use ``IF NOT EXISTS``,
    roles are dropped-then-created (``reset``) or created-if-missing
    (``preserve``), and GRANT/REVOKE are naturally repeatable.
    """
    if mode not in PROVISIONING_MODES:
        raise ProvisioningError(f"unknown provisioning mode: {mode!r}")
    _check_registry(registry)
    if connection_limit is None:
        connection_limit = get_settings().service_role_connection_limit

    statements: list[str] = []
    for extension in EXTENSIONS:
        statements.append(f'CREATE EXTENSION IF NOT EXISTS "{extension}"')

    for schema in registry:
        password = password_for(schema.role)
        if mode == PROVISIONING_MODE_RESET:
            statements.extend(_reset_role(schema.role, password, connection_limit))
        else:
            statements.extend(_upsert_role(schema.role, password, connection_limit))

    for schema in registry:
        statements.append(f"CREATE SCHEMA IF NOT EXISTS {schema.name}")
        statements.append(f"COMMENT ON SCHEMA {schema.name} IS {quote_literal(schema.description)}")

    for schema in registry:
        statements.extend(_own_schema_grants(schema.name, schema.role))
        for target in schema.reads:
            statements.extend(_read_grants(target, schema.role))
        statements.extend(function_grant_statements(schema))

    roles = ", ".join(schema.role for schema in registry)
    # Keep service roles out of public; shared functions are granted explicitly below.
    statements.append("REVOKE ALL ON SCHEMA public FROM PUBLIC")
    statements.append(f"REVOKE ALL ON SCHEMA public FROM {roles}")
    statements.append(UPDATED_AT_FUNCTION_SQL)
    statements.append(f"GRANT EXECUTE ON FUNCTION public.update_updated_at_column() TO {roles}")
    return statements


def build_teardown_statements(registry: Sequence[ServiceSchema] = SCHEMAS) -> list[str]:
    _check_registry(registry)
    statements = [f"DROP SCHEMA IF EXISTS {schema.name} CASCADE" for schema in reversed(registry)]
    statements.append("DROP FUNCTION IF EXISTS public.update_updated_at_column() CASCADE")
    for schema in registry:
        statements.append(
            f"""
DO $$
BEGIN
    IF EXISTS (SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(schema.role)}) THEN
        EXECUTE 'DROP OWNED BY {schema.role} CASCADE';
        EXECUTE 'DROP ROLE {schema.role}';
    END IF;
END
$$
""".strip()
        )
    statements.append("GRANT USAGE, CREATE ON SCHEMA public TO PUBLIC")
    return statements


async def execute_statements(connection: AsyncConnection, statements: Iterable[str]) -> int:
    count = 0
    for statement in statements:
        # Driver-level execution: passwords and PL/pgSQL bodies must not be parsed for bind params.
        await connection.exec_driver_sql(statement)
        count += 1
    return count


async def provision(
    connection: AsyncConnection,
    *,
    registry: Sequence[ServiceSchema] = SCHEMAS,
    mode: str | None = None,
    password_for: Callable[[str], str] = default_password_for,
) -> int:
    """Apply provisioning on ``connection``; the caller owns the transaction."""
    resolved_mode = mode or get_settings().provisioning_mode
    statements = build_provisioning_statements(registry, mode=resolved_mode, password_for=password_for)
    logger.info(
        "provisioning_started mode=%s schemas=%s statements=%s",
        resolved_mode,
        len(registry),
        len(statements),
    )
    applied = await execute_statements(connection, statements)
    logger.info("provisioning_completed mode=%s statements=%s", resolved_mode, applied)
    return applied


def updated_at_trigger_sql(schema: str, table: str) -> str:
    # Bind a table to the shared updated_at trigger function.
    validate_identifier(schema)
    validate_identifier(table)
    return (
        f"CREATE TRIGGER trg_{table}_updated_at BEFORE UPDATE ON {schema}.{table} "
        "FOR EACH ROW EXECUTE FUNCTION public.update_updated_at_column()"
    )
