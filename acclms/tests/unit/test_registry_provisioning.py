from __future__ import annotations

import pytest

from acclms.core.errors import ProvisioningError
from acclms.domain.registry import SCHEMAS, ServiceSchema, get_schema, may_read, schema_names
from acclms.persistence.provisioning import (
    PROVISIONING_MODE_PRESERVE,
    PROVISIONING_MODE_RESET,
    build_provisioning_statements,
    build_teardown_statements,
    function_grant_statements,
    updated_at_trigger_sql,
    validate_identifier,
)


def _password(role: str) -> str:
    return f"pw-{role}"


def test_registry_lists_fourteen_contexts_with_svc_roles() -> None:
    names = schema_names()
    assert len(names) == 14
    assert names[0] == "auth"
    assert "subscriptions" in names
    assert all(schema.role == f"{schema.name}_svc" for schema in SCHEMAS)


def test_may_read_follows_declared_reads() -> None:
    assert may_read("enrollments", "courses") is True
    assert may_read("enrollments", "enrollments") is True
    assert may_read("courses", "payments") is False
    with pytest.raises(KeyError):
        get_schema("missing")


def test_reset_mode_drops_roles_before_recreating() -> None:
    statements = build_provisioning_statements(mode=PROVISIONING_MODE_RESET, password_for=_password, connection_limit=5)
    joined = "\n".join(statements)
    assert 'CREATE EXTENSION IF NOT EXISTS "uuid-ossp"' in statements
    assert "DROP OWNED BY auth_svc CASCADE" in joined
    assert "CREATE ROLE auth_svc WITH LOGIN NOCREATEDB NOCREATEROLE NOSUPERUSER CONNECTION LIMIT 5" in joined
    assert "CREATE SCHEMA IF NOT EXISTS subscriptions" in statements
    # Roles exist before any grant references them.
    first_grant = next(i for i, s in enumerate(statements) if s.startswith("GRANT"))
    last_role = max(i for i, s in enumerate(statements) if s.startswith("CREATE ROLE"))
    assert last_role < first_grant


def test_preserve_mode_never_drops() -> None:
    statements = build_provisioning_statements(mode=PROVISIONING_MODE_PRESERVE, password_for=_password, connection_limit=5)
    joined = "\n".join(statements)
    assert "DROP OWNED" not in joined
    assert "DROP ROLE" not in joined
    assert "ALTER ROLE payments_svc WITH LOGIN" in joined


def test_grants_are_least_privilege() -> None:
    statements = build_provisioning_statements(password_for=_password, connection_limit=5)
    assert "GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA payments TO payments_svc" in statements
    assert "GRANT SELECT ON ALL TABLES IN SCHEMA courses TO payments_svc" in statements
    assert "GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA courses TO payments_svc" not in statements
    # kb reads only auth, so no kb_svc grant mentions any other foreign schema.
    kb_grants = [s for s in statements if s.endswith("TO kb_svc")]
    assert "GRANT SELECT ON ALL TABLES IN SCHEMA auth TO kb_svc" in kb_grants
    assert all("SCHEMA kb " in s or "SCHEMA auth " in s for s in kb_grants)
    assert "REVOKE ALL ON SCHEMA public FROM PUBLIC" in statements
    assert statements[-1].startswith("GRANT EXECUTE ON FUNCTION public.update_updated_at_column()")


def test_passwords_are_quoted_literals() -> None:
    statements = build_provisioning_statements(password_for=lambda role: "it's", connection_limit=1)
    assert any("PASSWORD 'it''s'" in s for s in statements)


def test_invalid_registry_is_rejected() -> None:
    with pytest.raises(ProvisioningError):
        build_provisioning_statements((ServiceSchema("a", "x", reads=("b",)),), password_for=_password)
    with pytest.raises(ProvisioningError):
        build_provisioning_statements((ServiceSchema("Bad-Name", "x"),), password_for=_password)
    with pytest.raises(ProvisioningError):
        build_provisioning_statements(mode="wipe", password_for=_password)


def test_teardown_drops_schemas_in_reverse_order() -> None:
    statements = build_teardown_statements()
    assert statements[0] == "DROP SCHEMA IF EXISTS subscriptions CASCADE"
    assert "DROP SCHEMA IF EXISTS auth CASCADE" in statements


def test_trigger_sql_validates_identifiers() -> None:
    assert updated_at_trigger_sql("courses", "courses").startswith(
        "CREATE TRIGGER trg_courses_updated_at BEFORE UPDATE ON courses.courses"
    )
    with pytest.raises(ProvisioningError):
        validate_identifier("courses; DROP TABLE x")


@pytest.mark.parametrize("mode", [PROVISIONING_MODE_RESET, PROVISIONING_MODE_PRESERVE])
def test_function_grants_are_reapplied_in_every_mode(mode: str) -> None:
    statements = build_provisioning_statements(mode=mode, password_for=_password, connection_limit=5)
    grant = next(s for s in statements if "GRANT EXECUTE ON FUNCTION analytics.create_event_partition(date)" in s)
    assert "REVOKE ALL ON FUNCTION analytics.create_event_partition(date) FROM PUBLIC" in grant
    assert "TO analytics_svc" in grant
    # Guarded so the grant is a no-op until the migration defines the function.
    assert "to_regprocedure('analytics.create_event_partition(date)') IS NOT NULL" in grant
    assert any("GRANT EXECUTE ON FUNCTION payments.generate_order_number() TO payments_svc" in s for s in statements)
    # Re-granted only after the role has been (re)created.
    role_created = max(
        i for i, s in enumerate(statements) if "CREATE ROLE analytics_svc" in s or "ALTER ROLE analytics_svc" in s
    )
    assert statements.index(grant) > role_created


def test_migrations_and_provisioning_share_function_grants() -> None:
    analytics = get_schema("analytics")
    assert function_grant_statements(analytics)[0] in build_provisioning_statements(
        password_for=_password, connection_limit=5
    )
    assert function_grant_statements(get_schema("kb")) == []


def test_function_grants_stay_inside_the_owning_schema() -> None:
    foreign = ServiceSchema("kb", "x", functions=("analytics.create_event_partition(date)",))
    with pytest.raises(ProvisioningError):
        build_provisioning_statements((foreign,), password_for=_password)
    injected = ServiceSchema("kb", "x", functions=("kb.f(); DROP TABLE x",))
    with pytest.raises(ProvisioningError):
        function_grant_statements(injected)
