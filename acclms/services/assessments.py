"""Quiz attempts and grading.

Choice, true/false and short-answer questions are graded as soon as a
submission is handed in. Essay and code answers wait for an instructor; the
submission stays ``submitted`` until every response carries a grade.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import QuizAttemptRejectedError, ReferenceIntegrityError
from acclms.domain import states
from acclms.domain.models import Quiz, QuizQuestion, QuizResponse, QuizSubmission
from acclms.persistence.repos import assessments as assessments_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalise_text(value: Any) -> str:
    return str(value).strip().lower()


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return [value]


def auto_grade(question: QuizQuestion, answer: Any) -> tuple[bool | None, Decimal]:
    """Return ``(is_correct, points_earned)`` for one answer.

    ``is_correct`` is None for question types that need an instructor.
    """
    if question.question_type not in states.AUTO_GRADED_QUESTION_TYPES:
        return None, Decimal("0.00")
    correct = list(question.correct_answers or [])
    if question.question_type in ("single_choice", "true_false"):
        is_correct = bool(correct) and answer == correct[0]
    elif question.question_type == "multiple_choice":
        is_correct = {str(item) for item in _as_list(answer)} == {str(item) for item in correct}
    else:
        # short_answer: any accepted spelling, ignoring case and surrounding whitespace.
        given = _normalise_text(answer) if isinstance(answer, str) else None
        is_correct = given is not None and any(_normalise_text(item) == given for item in correct)
    points = Decimal(question.points) if is_correct else Decimal("0")
    return is_correct, points.quantize(_CENT)


def is_passing(score: Decimal, max_score: Decimal, passing_percentage: Decimal) -> bool:
    if max_score <= 0:
        return False
    return (score / max_score * _HUNDRED) >= passing_percentage


async def add_question(
    session: AsyncSession,
    quiz: Quiz,
    *,
    question_text: str,
    question_type: str,
    points: int = 5,
    options: list[Any] | None = None,
    correct_answers: list[Any] | None = None,
    sort_order: int = 0,
    explanation: str | None = None,
    code_language: str | None = None,
) -> QuizQuestion:
    if question_type not in states.QUESTION_TYPES:
        raise ValueError(f"unknown question type: {question_type}")
    if question_type in states.AUTO_GRADED_QUESTION_TYPES and not correct_answers:
        raise ValueError(f"{question_type} questions need at least one correct answer")
    question = QuizQuestion(
        quiz_id=quiz.quiz_id,
        question_text=question_text,
        question_type=question_type,
        points=points,
        options=options or [],
        correct_answers=correct_answers or [],
        sort_order=sort_order,
        explanation=explanation,
        code_language=code_language,
    )
    return await assessments_repo.add_question(session, question)


async def start_submission(
    session: AsyncSession, quiz: Quiz, *, user_id: UUID, enrollment_id: UUID
) -> QuizSubmission:
    if not quiz.is_published:
        raise QuizAttemptRejectedError(quiz.quiz_id, "not_published")
    await ensure_reference(session, "auth.users", user_id, source="assessments.quiz_submissions.user_id")
    await ensure_reference(
        session, "enrollments.enrollments", enrollment_id, source="assessments.quiz_submissions.enrollment_id"
    )
    attempts = await assessments_repo.count_attempts(session, quiz.quiz_id, user_id)
    if attempts >= quiz.max_attempts:
        raise QuizAttemptRejectedError(quiz.quiz_id, "max_attempts")
    submission = await assessments_repo.create_submission(
        session,
        QuizSubmission(
            quiz_id=quiz.quiz_id,
            user_id=user_id,
            enrollment_id=enrollment_id,
            attempt_number=attempts + 1,
            status=states.QUIZ_SUBMISSION.initial,
            score=Decimal("0.00"),
            max_score=Decimal(quiz.total_points).quantize(_CENT),
        ),
    )
    logger.info(
        "quiz_attempt_started submission_id=%s quiz_id=%s attempt=%s",
        submission.submission_id,
        quiz.quiz_id,
        submission.attempt_number,
    )
    return submission


async def save_answer(
    session: AsyncSession, submission: QuizSubmission, question: QuizQuestion, answer: Any
) -> QuizResponse:
    # Answers can be changed until the attempt is handed in.
    if submission.status != "in_progress":
        raise ValueError(f"submission {submission.submission_id} is already {submission.status}")
    if question.quiz_id != submission.quiz_id:
        raise ReferenceIntegrityError(
            source="assessments.quiz_responses.question_id",
            target="assessments.quiz_questions",
            value=question.question_id,
        )
    response = await assessments_repo.get_response(session, submission.submission_id, question.question_id)
    if response is None:
        response = QuizResponse(
            submission_id=submission.submission_id,
            question_id=question.question_id,
            answer_data=answer,
        )
        session.add(response)
    else:
        response.answer_data = answer
    await session.flush()
    return response


def _finalise(submission: QuizSubmission, quiz: Quiz, responses: Iterable[QuizResponse]) -> None:
    score = sum((response.points_earned for response in responses), Decimal("0.00"))
    submission.score = score.quantize(_CENT, rounding=ROUND_HALF_UP)
    submission.status = states.QUIZ_SUBMISSION.require_transition(submission.status, "graded")
    submission.passed = is_passing(submission.score, submission.max_score, quiz.passing_score_percentage)
    submission.graded_at = _now()


async def submit(session: AsyncSession, submission: QuizSubmission, quiz: Quiz) -> QuizSubmission:
    """Hand in an attempt and grade what can be graded automatically."""
    submission.status = states.QUIZ_SUBMISSION.require_transition(submission.status, "submitted")
    submission.submitted_at = _now()
    questions = await assessments_repo.list_questions(session, quiz.quiz_id)
    by_id = {question.question_id: question for question in questions}
    responses = await assessments_repo.list_responses(session, submission.submission_id)
    needs_instructor = False
    for response in responses:
        question = by_id.get(response.question_id)
        if question is None:
            continue
        is_correct, points = auto_grade(question, response.answer_data)
        if is_correct is None:
            response.auto_graded = False
            needs_instructor = True
            continue
        response.is_correct = is_correct
        response.points_earned = points
        response.auto_graded = True
    if not needs_instructor:
        _finalise(submission, quiz, responses)
    await session.flush()
    logger.info(
        "quiz_submitted submission_id=%s status=%s score=%s",
        submission.submission_id,
        submission.status,
        submission.score,
    )
    return submission


async def grade_response(
    session: AsyncSession,
    submission: QuizSubmission,
    quiz: Quiz,
    response: QuizResponse,
    *,
    points_earned: Decimal,
    instructor_feedback: str | None = None,
) -> QuizSubmission:
    """Record an instructor grade; the submission is graded once no response is left open."""
    if submission.status != "submitted":
        raise ValueError(f"submission {submission.submission_id} is {submission.status}, not awaiting grading")
    questions = await assessments_repo.list_questions(session, quiz.quiz_id)
    question = next((q for q in questions if q.question_id == response.question_id), None)
    if question is None or response.submission_id != submission.submission_id:
        raise ReferenceIntegrityError(
            source="assessments.quiz_responses.question_id",
            target="assessments.quiz_questions",
            value=response.question_id,
        )
    if points_earned < 0 or points_earned > question.points:
        raise ValueError(f"points must be between 0 and {question.points}")
    response.points_earned = Decimal(points_earned).quantize(_CENT)
    response.is_correct = points_earned == question.points
    response.instructor_feedback = instructor_feedback
    response.auto_graded = False
    responses = await assessments_repo.list_responses(session, submission.submission_id)
    if all(item.is_correct is not None for item in responses):
        _finalise(submission, quiz, responses)
    await session.flush()
    return submission
