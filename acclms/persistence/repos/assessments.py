from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import QuizQuestion, QuizResponse, QuizSubmission


async def list_questions(session: AsyncSession, quiz_id: UUID) -> list[QuizQuestion]:
    result = await session.execute(
        select(QuizQuestion)
        .where(QuizQuestion.quiz_id == quiz_id)
        .order_by(QuizQuestion.sort_order, QuizQuestion.created_at)
    )
    return list(result.scalars().all())


async def add_question(session: AsyncSession, question: QuizQuestion) -> QuizQuestion:
    session.add(question)
    await session.flush()
    return question


async def count_attempts(session: AsyncSession, quiz_id: UUID, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(QuizSubmission)
        .where(QuizSubmission.quiz_id == quiz_id, QuizSubmission.user_id == user_id)
    )
    return int(result.scalar_one())


async def create_submission(session: AsyncSession, submission: QuizSubmission) -> QuizSubmission:
    session.add(submission)
    await session.flush()
    return submission


async def list_responses(session: AsyncSession, submission_id: UUID) -> list[QuizResponse]:
    result = await session.execute(select(QuizResponse).where(QuizResponse.submission_id == submission_id))
    return list(result.scalars().all())


async def get_response(session: AsyncSession, submission_id: UUID, question_id: UUID) -> QuizResponse | None:
    result = await session.execute(
        select(QuizResponse).where(
            QuizResponse.submission_id == submission_id,
            QuizResponse.question_id == question_id,
        )
    )
    return result.scalar_one_or_none()
