from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select

from acclms.core.logging import configure_logging
from acclms.domain.models import CourseCategory, CourseSection, DiscountCode, Lesson
from acclms.persistence.db import SessionLocal, engine
from acclms.persistence.repos import users as users_repo
from acclms.services.analytics import end_session, record_event, start_session
from acclms.services.courses import create_course, publish_course
from acclms.services.partitions import ensure_event_partitions


DEMO_INSTRUCTOR_EMAIL = "instructor@demo.acc-lms.com"
DEMO_STUDENT_EMAIL = "student@demo.acc-lms.com"
# Demo accounts cannot log in; credentials belong to the auth service.
DEMO_PASSWORD_HASH = "!demo"


@dataclass(frozen=True)
class DemoCourse:
    # Stable slugs keep the seed idempotent across runs.
    slug: str
    title: str
    summary: str
    category_slug: str
    price_cents: int
    sections: tuple[tuple[str, tuple[str, ...]], ...]


def build_demo_courses() -> tuple[DemoCourse, ...]:
    return (
        DemoCourse(
            slug="python-fundamentals",
            title="Python Fundamentals",
            summary="Variables, control flow, functions and the standard library.",
            category_slug="programming",
            price_cents=4900,
            sections=(
                ("Getting Started", ("Installing Python", "Your first script")),
                ("Core Language", ("Control flow", "Functions", "Modules")),
            ),
        ),
        DemoCourse(
            slug="sql-for-analysts",
            title="SQL for Analysts",
            summary="Query, join and aggregate relational data with confidence.",
            category_slug="data-science",
            price_cents=0,
            sections=(("Querying", ("SELECT basics", "Joins", "Window functions")),),
        ),
    )


async def seed_demo() -> int:
    async with SessionLocal() as session:
        if await users_repo.get_user_by_email(session, DEMO_INSTRUCTOR_EMAIL) is not None:
            print("Demo data already seeded; skipping.")
            return 0

        instructor = await users_repo.create_user(
            session,
            email=DEMO_INSTRUCTOR_EMAIL,
            hashed_password=DEMO_PASSWORD_HASH,
            first_name="Demo",
            last_name="Instructor",
            role="instructor",
        )
        student = await users_repo.create_user(
            session,
            email=DEMO_STUDENT_EMAIL,
            hashed_password=DEMO_PASSWORD_HASH,
            first_name="Demo",
            last_name="Student",
        )
        categories = {
            row.slug: row.category_id
            for row in (await session.execute(select(CourseCategory))).scalars().all()
        }

        lesson_count = 0
        for demo in build_demo_courses():
            course = await create_course(
                session,
                instructor_id=instructor.user_id,
                title=demo.title,
                slug=demo.slug,
                short_description=demo.summary,
                price_cents=demo.price_cents,
                category_id=categories.get(demo.category_slug),
            )
            for section_order, (section_title, lesson_titles) in enumerate(demo.sections, start=1):
                section = CourseSection(course_id=course.course_id, title=section_title, sort_order=section_order)
                session.add(section)
                await session.flush()
                for lesson_order, lesson_title in enumerate(lesson_titles, start=1):
                    session.add(
                        Lesson(
                            section_id=section.section_id,
                            course_id=course.course_id,
                            title=lesson_title,
                            duration_seconds=600,
                            is_preview=lesson_order == 1,
                            sort_order=lesson_order,
                        )
                    )
                    lesson_count += 1
            await publish_course(session, course)

        session.add(
            DiscountCode(
                code="WELCOME10",
                description="10% off any course",
                discount_type="percentage",
                discount_value=Decimal("10.00"),
                created_by=instructor.user_id,
            )
        )
        await ensure_event_partitions(session)
        visit = await start_session(session, user_id=student.user_id, platform="web", entry_page="/login")
        await record_event(
            session,
            event_type="login",
            session_id=visit.session_id,
            user_id=student.user_id,
            platform="web",
            page_url="/login",
        )
        await record_event(
            session,
            event_type="logout",
            session_id=visit.session_id,
            user_id=student.user_id,
            platform="web",
            page_url="/courses",
        )
        await end_session(session, visit.session_id, exit_page="/courses")
        await session.commit()
        print(f"Seeded demo data: courses={len(build_demo_courses())} lessons={lesson_count}.")
        return 0


async def _run() -> int:
    try:
        return await seed_demo()
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo users, courses and a discount code")
    parser.parse_args()
    configure_logging()
    # Surface clear failures and exit non-zero so CI/dev scripts can detect issues.
    try:
        return asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
