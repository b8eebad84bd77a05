from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from acclms.apps.api.main import create_app
from acclms.persistence.db import SessionLocal
from acclms.services import orders as orders_service
from acclms.services.order_numbers import is_valid_order_number
from acclms.tests.utils.factories import create_test_course, create_test_discount_code, create_test_user


def _headers(user, role: str | None = None) -> dict[str, str]:
    return {"X-User-Id": str(user.user_id), "X-Role": role or user.role}


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test")


@pytest.mark.asyncio
async def test_catalog_hides_draft_courses() -> None:
    instructor = await create_test_user(role="instructor")
    published, _ = await create_test_course(instructor_id=instructor.user_id)
    draft, _ = await create_test_course(instructor_id=instructor.user_id, published=False)

    async with _client() as client:
        ok = await client.get(f"/api/v1/courses/{published.course_id}")
        by_slug = await client.get(f"/api/v1/courses/slug/{published.slug}")
        hidden = await client.get(f"/api/v1/courses/{draft.course_id}")

    assert ok.status_code == 200
    assert ok.json()["data"]["is_published"] is True
    assert by_slug.json()["data"]["course_id"] == str(published.course_id)
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_enrollment_progress_through_certificate() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    course, lessons = await create_test_course(instructor_id=instructor.user_id)
    headers = _headers(student)

    async with _client() as client:
        created = await client.post("/api/v1/enrollments", json={"course_id": str(course.course_id)}, headers=headers)
        assert created.status_code == 201
        enrollment = created.json()["data"]
        assert enrollment["status"] == "active"

        duplicate = await client.post(
            "/api/v1/enrollments", json={"course_id": str(course.course_id)}, headers=headers
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "ENROLLMENT_EXISTS"

        catalog = await client.get(f"/api/v1/courses/{course.course_id}")
        assert catalog.json()["data"]["total_enrollments"] == 1

        base = f"/api/v1/enrollments/{enrollment['enrollment_id']}"
        not_yet = await client.get(f"{base}/certificate", headers=headers)
        assert not_yet.status_code == 409

        first = await client.post(
            f"{base}/lessons/{lessons[0].lesson_id}/complete", json={"time_spent_seconds": 120}, headers=headers
        )
        assert first.status_code == 200
        assert float(first.json()["data"]["progress_percentage"]) == 50.0
        assert first.json()["data"]["completed_lessons"] == 1

        second = await client.post(f"{base}/lessons/{lessons[1].lesson_id}/complete", headers=headers)
        assert float(second.json()["data"]["progress_percentage"]) == 100.0
        assert second.json()["data"]["status"] == "completed"

        certificate = await client.get(f"{base}/certificate", headers=headers)
        assert certificate.status_code == 200
        assert certificate.json()["data"]["course_id"] == str(course.course_id)

        # Another student cannot see the enrollment at all.
        stranger = await create_test_user()
        foreign = await client.get(base, headers=_headers(stranger))
        assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_enrolling_an_unknown_user_is_a_reference_error() -> None:
    instructor = await create_test_user(role="instructor")
    course, _ = await create_test_course(instructor_id=instructor.user_id)

    async with _client() as client:
        resp = await client.post(
            "/api/v1/enrollments",
            json={"course_id": str(course.course_id)},
            headers={"X-User-Id": str(uuid4()), "X-Role": "student"},
        )

    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "REFERENCE_NOT_FOUND"
    assert body["error"]["details"]["target"] == "auth.users"


@pytest.mark.asyncio
async def test_order_with_discount_then_cancel() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    course, _ = await create_test_course(instructor_id=instructor.user_id, price_cents=4900)
    discount = await create_test_discount_code(created_by=instructor.user_id, value="10.00")
    headers = _headers(student)

    async with _client() as client:
        coupon = await client.post(
            "/api/v1/payments/coupon",
            json={"code": discount.code, "course_id": str(course.course_id)},
            headers=headers,
        )
        assert coupon.status_code == 200
        assert coupon.json()["data"]["discount_cents"] == 490

        bad_coupon = await client.post(
            "/api/v1/payments/coupon",
            json={"code": "NOPE-" + uuid4().hex[:6], "course_id": str(course.course_id)},
            headers=headers,
        )
        assert bad_coupon.status_code == 422
        assert bad_coupon.json()["error"]["details"] == {"reason": "not_found"}

        created = await client.post(
            "/api/v1/orders",
            json={"course_id": str(course.course_id), "discount_code": discount.code},
            headers=headers,
        )
        assert created.status_code == 201
        order = created.json()["data"]
        assert is_valid_order_number(order["order_number"])
        assert (order["subtotal_cents"], order["discount_cents"], order["total_cents"]) == (4900, 490, 4410)
        assert order["status"] == "pending"

        mine = await client.get("/api/v1/orders/me", headers=headers)
        assert [item["order_id"] for item in mine.json()["data"]] == [order["order_id"]]

        cancelled = await client.post(f"/api/v1/orders/{order['order_id']}/cancel", headers=headers)
        assert cancelled.status_code == 200
        assert cancelled.json()["data"]["status"] == "cancelled"

        again = await client.post(f"/api/v1/orders/{order['order_id']}/cancel", headers=headers)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_STATE_TRANSITION"


@pytest.mark.asyncio
async def test_data_rights_requests_are_private_to_their_subject() -> None:
    subject = await create_test_user()
    other = await create_test_user()

    async with _client() as client:
        created = await client.post(
            "/api/v1/compliance/requests",
            json={
                "email": subject.email,
                "name": "Test Student",
                "right_type": "access",
                "jurisdiction": "eu",
            },
            headers=_headers(subject),
        )
        assert created.status_code == 201
        request = created.json()["data"]
        assert request["jurisdiction"] == "gdpr"
        assert request["overdue"] is False

        own = await client.get(f"/api/v1/compliance/requests/{request['id']}", headers=_headers(subject))
        foreign = await client.get(f"/api/v1/compliance/requests/{request['id']}", headers=_headers(other))

    assert own.status_code == 200
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_profile_and_preferences() -> None:
    user = await create_test_user()
    headers = _headers(user)

    async with _client() as client:
        profile = await client.get("/api/v1/users/me", headers=headers)
        assert profile.status_code == 200
        assert profile.json()["data"]["email"] == user.email

        updated = await client.patch("/api/v1/users/me/preferences", json={"theme": "dark"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["data"]["theme"] == "dark"

        invalid = await client.patch("/api/v1/users/me/preferences", json={"theme": "neon"}, headers=headers)
        assert invalid.status_code == 422

        notifications = await client.patch(
            "/api/v1/users/me/notifications", json={"marketing_emails": False}, headers=headers
        )
        assert notifications.json()["data"]["marketing_emails"] is False


@pytest.mark.asyncio
async def test_admin_refunds_only_paid_orders() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    admin = await create_test_user(role="admin")
    course, _ = await create_test_course(instructor_id=instructor.user_id)
    async with SessionLocal() as session:
        pending = await orders_service.create_order(session, user_id=student.user_id, course_id=course.course_id)
        paid = await orders_service.create_order(session, user_id=student.user_id, course_id=course.course_id)
        await orders_service.transition_order(session, paid, "processing")
        await orders_service.transition_order(session, paid, "paid")
        await session.commit()

    async with _client() as client:
        by_owner = await client.post(f"/api/v1/orders/{paid.order_id}/refund", headers=_headers(student))
        assert by_owner.status_code == 403

        not_paid = await client.post(f"/api/v1/orders/{pending.order_id}/refund", headers=_headers(admin))
        assert not_paid.status_code == 409
        assert not_paid.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

        refunded = await client.post(f"/api/v1/orders/{paid.order_id}/refund", headers=_headers(admin))
        assert refunded.status_code == 200
        assert refunded.json()["data"]["status"] == "refunded"


@pytest.mark.asyncio
async def test_subscription_cancel_and_reactivate() -> None:
    student = await create_test_user()
    stranger = await create_test_user()
    headers = _headers(student)

    async with _client() as client:
        plans = await client.get("/api/v1/subscriptions/plans")
        assert plans.status_code == 200
        basic = next(plan for plan in plans.json()["data"] if plan["tier"] == "basic")

        none_yet = await client.get("/api/v1/subscriptions/me", headers=headers)
        assert none_yet.status_code == 404

        created = await client.post("/api/v1/subscriptions", json={"plan_id": basic["id"]}, headers=headers)
        assert created.status_code == 201
        subscription = created.json()["data"]
        base = f"/api/v1/subscriptions/{subscription['id']}"

        duplicate = await client.post("/api/v1/subscriptions", json={"plan_id": basic["id"]}, headers=headers)
        assert duplicate.status_code == 409

        hidden = await client.post(f"{base}/cancel", headers=_headers(stranger))
        assert hidden.status_code == 404

        at_period_end = await client.post(f"{base}/cancel", json={"immediate": False}, headers=headers)
        assert at_period_end.status_code == 200
        assert at_period_end.json()["data"]["cancel_at_period_end"] is True

        withdrawn = await client.post(f"{base}/reactivate", headers=headers)
        assert withdrawn.json()["data"]["cancel_at_period_end"] is False
        assert withdrawn.json()["data"]["cancelled_at"] is None

        immediate = await client.post(f"{base}/cancel", json={"immediate": True}, headers=headers)
        assert immediate.json()["data"]["status"] == "cancelled"

        reactivated = await client.post(f"{base}/reactivate", headers=headers)
        assert reactivated.status_code == 200
        assert reactivated.json()["data"]["status"] == "active"

        mine = await client.get("/api/v1/subscriptions/me", headers=headers)
        assert mine.json()["data"]["id"] == subscription["id"]
