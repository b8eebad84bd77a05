from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from acclms.domain.models import ConsentRecord, DataRightsRequest


async def create_request(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    jurisdiction: str,
    right_type: str,
    user_id: UUID | None = None,
    specific_request: str | None = None,
    deadline_at: datetime | None = None,
) -> DataRightsRequest:
    request = DataRightsRequest(
        email=email,
        name=name,
        jurisdiction=jurisdiction,
        right_type=right_type,
        user_id=user_id,
        specific_request=specific_request,
    )
    # Leave deadline_at unset so the BEFORE INSERT trigger computes it.
    if deadline_at is not None:
        request.deadline_at = deadline_at
    session.add(request)
    await session.flush()
    return request


async def get_request(session: AsyncSession, request_id: UUID) -> DataRightsRequest | None:
    result = await session.execute(select(DataRightsRequest).where(DataRightsRequest.id == request_id))
    return result.scalar_one_or_none()


async def list_open_requests_due_before(session: AsyncSession, cutoff: datetime) -> list[DataRightsRequest]:
    result = await session.execute(
        select(DataRightsRequest)
        .where(
            DataRightsRequest.status.not_in(("resolved", "denied", "expired")),
            DataRightsRequest.deadline_at < cutoff,
        )
        .order_by(DataRightsRequest.deadline_at, DataRightsRequest.id)
    )
    return list(result.scalars().all())


async def record_consent(
    session: AsyncSession,
    *,
    consent_type: str,
    granted: bool,
    policy_version: str,
    source: str,
    user_id: UUID | None = None,
    anonymous_id: str | None = None,
) -> ConsentRecord:
    record = ConsentRecord(
        consent_type=consent_type,
        granted=granted,
        policy_version=policy_version,
        source=source,
        user_id=user_id,
        anonymous_id=anonymous_id,
    )
    session.add(record)
    await session.flush()
    return record
