from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine

from acclms.core.config import get_settings
from acclms.core.errors import ActiveSubscriptionExistsError, PartitionRoutingError
from acclms.domain.registry import SCHEMAS
from acclms.persistence.db import SessionLocal, create_service_engine, engine
from acclms.persistence.provisioning import PROVISIONING_MODES, provision
from acclms.services import analytics as analytics_service
from acclms.services import compliance as compliance_service
from acclms.services import subscriptions as subscriptions_service
from acclms.services.order_numbers import parse_order_number
from acclms.services.orders import create_order
from acclms.services.partitions import list_event_partitions, month_start, partition_name
from acclms.tests.utils.factories import create_test_course, create_test_user


@pytest.mark.asyncio
async def test_every_service_has_a_schema_and_login_role() -> None:
    async with SessionLocal() as session:
        schemas = set(
            (
                await session.execute(
                    text("SELECT nspname FROM pg_namespace WHERE nspname = ANY(:names)"),
                    {"names": [schema.name for schema in SCHEMAS]},
                )
            ).scalars()
        )
        roles = set(
            (
                await session.execute(
                    text("SELECT rolname FROM pg_roles WHERE rolcanlogin AND rolname = ANY(:names)"),
                    {"names": [schema.role for schema in SCHEMAS]},
                )
            ).scalars()
        )
    assert schemas == {schema.name for schema in SCHEMAS}
    assert roles == {schema.role for schema in SCHEMAS}


@pytest.mark.asyncio
async def test_no_database_foreign_key_crosses_schemas() -> None:
    async with SessionLocal() as session:
        crossing = await session.scalar(
            text(
                "SELECT count(*) FROM pg_constraint c "
                "JOIN pg_class src ON src.oid = c.conrelid "
                "JOIN pg_class dst ON dst.oid = c.confrelid "
                "WHERE c.contype = 'f' AND src.relnamespace <> dst.relnamespace"
            )
        )
    assert crossing == 0


@pytest.mark.asyncio
async def test_order_numbers_come_from_the_database_sequence() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    course, _lessons = await create_test_course(instructor_id=instructor.user_id)
    async with SessionLocal() as session:
        first = await create_order(session, user_id=student.user_id, course_id=course.course_id)
        second = await create_order(session, user_id=student.user_id, course_id=course.course_id)
        await session.commit()
    year, first_seq = parse_order_number(first.order_number)
    _year, second_seq = parse_order_number(second.order_number)
    assert year == datetime.now(timezone.utc).year
    assert second_seq > first_seq
    assert first.metadata_json == {"course_title": course.title}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("jurisdiction", "resolved", "days"),
    [
        ("CO", "colombia", 15),
        ("eu", "gdpr", 30),
        (None, "general", 30),
        ("california", "ccpa", 45),
        ("br", "lgpd", 15),
    ],
)
async def test_deadline_trigger_matches_the_python_rules(jurisdiction: str | None, resolved: str, days: int) -> None:
    async with SessionLocal() as session:
        request = await compliance_service.create_data_rights_request(
            session,
            email="Subject@Example.com",
            name="Data Subject",
            jurisdiction=jurisdiction,
            right_type="access",
        )
        await session.commit()
    assert request.jurisdiction == resolved
    assert request.email == "subject@example.com"
    assert request.deadline_at == compliance_service.compute_deadline(resolved, request.received_at)
    assert request.deadline_at - request.received_at == timedelta(days=days)


@pytest.mark.asyncio
async def test_events_route_to_monthly_partitions() -> None:
    user = await create_test_user()
    async with SessionLocal() as session:
        partitions = await list_event_partitions(session)
        assert partition_name(month_start(datetime.now(timezone.utc))) in partitions

        visit = await analytics_service.start_session(session, user_id=user.user_id, platform="web")
        event = await analytics_service.record_event(
            session, event_type="page_view", session_id=visit.session_id, user_id=user.user_id, platform="web"
        )
        assert event.created_month == month_start(event.timestamp)

        with pytest.raises(PartitionRoutingError):
            await analytics_service.record_event(
                session,
                auto_create_partition=False,
                event_type="page_view",
                session_id=visit.session_id,
                timestamp=datetime(2090, 1, 15, tzinfo=timezone.utc),
            )
        # The savepoint rolled back only the failed insert.
        await session.commit()
        page_views = await session.scalar(
            text("SELECT page_views FROM analytics.sessions WHERE session_id = :sid"), {"sid": visit.session_id}
        )
    assert page_views == 1


@pytest.mark.asyncio
async def test_one_live_subscription_per_user() -> None:
    user = await create_test_user()
    async with SessionLocal() as session:
        plan = (
            await session.execute(text("SELECT id FROM subscriptions.plans WHERE tier = 'basic'"))
        ).scalar_one()
        subscription = await subscriptions_service.create_subscription(session, user_id=user.user_id, plan_id=plan)
        assert subscription.status == "trialing"
        with pytest.raises(ActiveSubscriptionExistsError):
            await subscriptions_service.create_subscription(session, user_id=user.user_id, plan_id=plan)
        invoice = await subscriptions_service.renew_subscription(session, subscription)
        await session.commit()
    assert subscription.status == "active"
    assert invoice is not None
    assert invoice.total_cents == 2900


@pytest.mark.asyncio
async def test_service_roles_only_read_foreign_schemas() -> None:
    service_engine = create_service_engine("payments")
    try:
        try:
            connection = await service_engine.connect()
        except (OSError, DBAPIError) as exc:
            pytest.skip(f"service role login unavailable: {exc}")
        try:
            await connection.execute(text("SELECT count(*) FROM courses.courses"))
            with pytest.raises(DBAPIError):
                await connection.execute(text("DELETE FROM courses.courses WHERE false"))
        finally:
            await connection.close()
    finally:
        await service_engine.dispose()


@pytest.mark.asyncio
async def test_events_in_a_new_month_create_their_partition() -> None:
    month = date(2091, 3, 1)
    try:
        async with SessionLocal() as session:
            visit = await analytics_service.start_session(session, platform="web")
            event = await analytics_service.record_event(
                session,
                auto_create_partition=True,
                event_type="page_view",
                session_id=visit.session_id,
                timestamp=datetime(2091, 3, 9, tzinfo=timezone.utc),
            )
            await session.commit()
            assert event.created_month == month
            assert partition_name(month) in await list_event_partitions(session)
    finally:
        async with engine.begin() as connection:
            await connection.execute(text(f"DROP TABLE IF EXISTS analytics.{partition_name(month)}"))


@pytest.mark.asyncio
async def test_ending_a_session_records_duration_and_exit_page() -> None:
    user = await create_test_user()
    async with SessionLocal() as session:
        visit = await analytics_service.start_session(session, user_id=user.user_id, platform="web")
        ended = await analytics_service.end_session(session, visit.session_id, exit_page="/courses")
        first_end = ended.ended_at
        again = await analytics_service.end_session(session, visit.session_id, exit_page="/elsewhere")
        await session.commit()
    assert ended.exit_page == "/courses"
    assert ended.is_active is False
    assert again.ended_at == first_end
    assert again.exit_page == "/courses"


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", PROVISIONING_MODES)
async def test_reprovisioning_keeps_function_grants(mode: str) -> None:
    admin_engine = create_async_engine(get_settings().provisioning_database_url())
    try:
        async with admin_engine.connect() as connection:
            transaction = await connection.begin()
            try:
                is_superuser = await connection.scalar(
                    text("SELECT rolsuper FROM pg_roles WHERE rolname = current_user")
                )
                if not is_superuser:
                    pytest.skip("provisioning needs a superuser connection")
                await provision(connection, mode=mode)
                await provision(connection, mode=mode)
                grants = {
                    role: await connection.scalar(
                        text("SELECT has_function_privilege(:role, :fn, 'EXECUTE')"),
                        {"role": role, "fn": signature},
                    )
                    for role, signature in (
                        ("analytics_svc", "analytics.create_event_partition(date)"),
                        ("payments_svc", "payments.generate_order_number()"),
                    )
                }
                public_execute = await connection.scalar(
                    text(
                        "SELECT has_function_privilege("
                        "'courses_svc', 'analytics.create_event_partition(date)', 'EXECUTE')"
                    )
                )
            finally:
                # DDL and role changes are transactional; leave the shared database untouched.
                await transaction.rollback()
    finally:
        await admin_engine.dispose()
    assert grants == {"analytics_svc": True, "payments_svc": True}
    assert public_execute is False
