from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import text

from acclms.core.errors import AccessTokenRejectedError, QuizAttemptRejectedError
from acclms.domain.models import Quiz
from acclms.persistence.db import SessionLocal
from acclms.persistence.repos import content as content_repo
from acclms.persistence.repos import kb as kb_repo
from acclms.services import assessments as assessments_service
from acclms.services import content as content_service
from acclms.services import enrollments as enrollments_service
from acclms.services import kb as kb_service
from acclms.services.users import refresh_user_stats
from acclms.tests.utils.factories import create_test_course, create_test_user


@pytest.mark.asyncio
async def test_quiz_attempt_is_graded_and_attempts_are_capped() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    course, lessons = await create_test_course(instructor_id=instructor.user_id)
    async with SessionLocal() as session:
        enrollment = await enrollments_service.enroll(session, user_id=student.user_id, course_id=course.course_id)
        quiz = Quiz(
            course_id=course.course_id,
            lesson_id=lessons[0].lesson_id,
            title="Check",
            total_points=10,
            max_attempts=1,
            is_published=True,
        )
        session.add(quiz)
        await session.flush()
        tf = await assessments_service.add_question(
            session, quiz, question_text="SQL is declarative", question_type="true_false", correct_answers=[True]
        )
        short = await assessments_service.add_question(
            session,
            quiz,
            question_text="Keyword to read rows",
            question_type="short_answer",
            correct_answers=["select"],
            sort_order=1,
        )
        submission = await assessments_service.start_submission(
            session, quiz, user_id=student.user_id, enrollment_id=enrollment.enrollment_id
        )
        await assessments_service.save_answer(session, submission, tf, True)
        await assessments_service.save_answer(session, submission, short, "update")
        await assessments_service.save_answer(session, submission, short, " SELECT ")
        await assessments_service.submit(session, submission, quiz)
        await session.commit()

        assert submission.status == "graded"
        assert submission.score == Decimal("10.00")
        assert submission.passed is True
        responses = await session.scalar(
            text("SELECT count(*) FROM assessments.quiz_responses WHERE submission_id = :id"),
            {"id": submission.submission_id},
        )
        assert responses == 2

        with pytest.raises(QuizAttemptRejectedError):
            await assessments_service.start_submission(
                session, quiz, user_id=student.user_id, enrollment_id=enrollment.enrollment_id
            )


@pytest.mark.asyncio
async def test_user_stats_follow_lesson_progress() -> None:
    instructor = await create_test_user(role="instructor")
    student = await create_test_user()
    course, lessons = await create_test_course(instructor_id=instructor.user_id)
    async with SessionLocal() as session:
        enrollment = await enrollments_service.enroll(session, user_id=student.user_id, course_id=course.course_id)
        await enrollments_service.complete_lesson(session, enrollment, lessons[0].lesson_id, time_spent_seconds=180)
        stats = await refresh_user_stats(session, student.user_id)
        await session.commit()
    assert stats.courses_enrolled == 1
    assert stats.courses_completed == 0
    assert stats.total_learning_time_minutes == 3
    assert stats.average_completion_rate == Decimal("0.5000")
    assert stats.current_streak_days == 1


@pytest.mark.asyncio
async def test_download_token_is_single_use_and_counted() -> None:
    instructor = await create_test_user(role="instructor")
    course, lessons = await create_test_course(instructor_id=instructor.user_id)
    async with SessionLocal() as session:
        asset = await content_service.register_asset(
            session,
            owner_id=instructor.user_id,
            filename="slides.pdf",
            content_type="application/pdf",
            size_bytes=4096,
            asset_type="document",
            course_id=course.course_id,
            lesson_id=lessons[0].lesson_id,
        )
        await content_service.transition_asset(session, asset, "processing")
        await content_service.transition_asset(session, asset, "ready")
        issued = await content_service.issue_access_token(session, asset, token_type="download")
        await session.commit()

        stored = await session.scalar(
            text("SELECT token_hash FROM content.access_tokens WHERE token_id = :id"), {"id": issued.token.token_id}
        )
        assert stored == content_service.hash_access_token(issued.raw_token)

        await content_service.redeem_access_token(session, issued.raw_token, token_type="download")
        await session.commit()
        with pytest.raises(AccessTokenRejectedError):
            await content_service.redeem_access_token(session, issued.raw_token, token_type="download")
        await session.rollback()

        daily = await content_repo.list_usage(session, asset.asset_id, "daily")
        monthly = await content_repo.list_usage(session, asset.asset_id, "monthly")
    assert [(row.download_count, row.bytes_transferred) for row in daily] == [(1, 4096)]
    assert [row.download_count for row in monthly] == [1]


@pytest.mark.asyncio
async def test_article_versions_feedback_and_related_links() -> None:
    author = await create_test_user(role="instructor")
    reader = await create_test_user()
    async with SessionLocal() as session:
        category = await kb_service.create_category(session, name=f"Billing {author.user_id.hex[:8]}")
        article = await kb_service.create_article(
            session,
            author_id=author.user_id,
            title=f"Refund policy {author.user_id.hex[:8]}",
            content="Refunds are available for 14 days.",
            category_id=category.category_id,
        )
        other = await kb_service.create_article(
            session, author_id=author.user_id, title=f"Invoices {author.user_id.hex[:8]}", content="Where to find them."
        )
        await kb_service.update_article(
            session, article, changed_by=author.user_id, content="Refunds are available for 30 days."
        )
        await kb_service.transition_article(session, article, "published")
        await kb_service.record_feedback(session, article, is_helpful=True, user_id=reader.user_id)
        await kb_service.record_feedback(session, article, is_helpful=False, anonymous_id="visitor-1")
        await kb_service.relate_articles(session, article, other, relevance_score=Decimal("0.80"))
        await kb_service.relate_articles(session, article, other, relevance_score=Decimal("0.60"))
        await session.commit()

        versions = await kb_repo.list_versions(session, article.article_id)
        related = await kb_repo.list_related(session, article.article_id)
        await session.refresh(article)
        await session.refresh(category)
    assert [v.version_number for v in versions] == [1, 2]
    assert versions[-1].content == "Refunds are available for 30 days."
    assert (article.helpful_count, article.not_helpful_count) == (1, 1)
    assert article.published_at is not None
    assert category.article_count == 1
    assert [(link.related_article_id, link.relevance_score) for link in related] == [
        (other.article_id, Decimal("0.60"))
    ]
