"""Data-subject rights requests and their legal response windows.

The deadline table here is the Python mirror of
``compliance.legal_response_days(jurisdiction)``; the database trigger fills
``deadline_at`` on insert and :func:`compute_deadline` gives the same answer
without a round trip (API previews, tests, backfills).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from acclms.core.errors import UnknownJurisdictionError, UnsupportedDataRightError
from acclms.domain.models import DataRightsRequest
from acclms.domain.states import DATA_RIGHT_TYPES, DATA_RIGHTS_REQUEST, JURISDICTIONS
from acclms.persistence.repos import compliance as compliance_repo
from acclms.services.references import ensure_reference


logger = logging.getLogger(__name__)

DEFAULT_JURISDICTION = "general"


@dataclass(frozen=True)
class LegalDeadline:
    jurisdiction: str
    response_days: int
    extension_days: int | None
    breach_notification_hours: int | None = None


LEGAL_DEADLINES: dict[str, LegalDeadline] = {
    "colombia": LegalDeadline("colombia", 15, 8),
    "gdpr": LegalDeadline("gdpr", 30, 60, 72),
    "ccpa": LegalDeadline("ccpa", 45, 45),
    "lgpd": LegalDeadline("lgpd", 15, None, 72),
    "general": LegalDeadline("general", 30, 30),
}

JURISDICTION_ALIASES: dict[str, str] = {
    "co": "colombia",
    "arco": "colombia",
    "eu": "gdpr",
    "us-ca": "ccpa",
    "cpra": "ccpa",
    "california": "ccpa",
    "br": "lgpd",
    "brazil": "lgpd",
}

# Jurisdictions absent from this map accept every right type.
ALLOWED_RIGHTS: dict[str, frozenset[str]] = {
    "colombia": frozenset({"access", "rectification", "erasure", "objection"}),
    "ccpa": frozenset(
        {"access", "erasure", "opt_out_sale", "opt_out_sharing", "rectification", "limit_sensitive"}
    ),
}

_OPEN_STATUSES = frozenset({"received", "identity_pending", "in_progress", "awaiting_info", "appealed"})


def parse_jurisdiction(value: str | None, *, strict: bool = False) -> str:
    """Normalise a jurisdiction name or ISO-style alias.

    Unknown values fall back to ``general`` unless ``strict`` is set.
    """
    if not value or not value.strip():
        return DEFAULT_JURISDICTION
    key = value.strip().lower()
    key = JURISDICTION_ALIASES.get(key, key)
    if key in JURISDICTIONS:
        return key
    if strict:
        raise UnknownJurisdictionError(f"unknown jurisdiction: {value}")
    return DEFAULT_JURISDICTION


def legal_deadline(jurisdiction: str) -> LegalDeadline:
    return LEGAL_DEADLINES[parse_jurisdiction(jurisdiction)]


def compute_deadline(jurisdiction: str, received_at: datetime) -> datetime:
    return received_at + timedelta(days=legal_deadline(jurisdiction).response_days)


def validate_right_type(jurisdiction: str, right_type: str) -> None:
    if right_type not in DATA_RIGHT_TYPES:
        raise UnsupportedDataRightError(jurisdiction=jurisdiction, right_type=right_type)
    allowed = ALLOWED_RIGHTS.get(jurisdiction)
    if allowed is not None and right_type not in allowed:
        raise UnsupportedDataRightError(jurisdiction=jurisdiction, right_type=right_type)


def extend_deadline(request: DataRightsRequest) -> datetime:
    """Apply the jurisdiction's single extension to an open request.

    Raises ``ValueError`` when the jurisdiction allows none, when the request
    is already extended, or when it is closed.
    """
    rules = legal_deadline(request.jurisdiction)
    if rules.extension_days is None:
        raise ValueError(f"{rules.jurisdiction} does not allow deadline extensions")
    if request.extended_deadline_at is not None:
        raise ValueError("deadline already extended")
    if request.status not in _OPEN_STATUSES:
        raise ValueError(f"cannot extend a {request.status} request")
    request.extended_deadline_at = request.deadline_at + timedelta(days=rules.extension_days)
    return request.extended_deadline_at


def effective_deadline(request: DataRightsRequest) -> datetime:
    return request.extended_deadline_at or request.deadline_at


def is_overdue(request: DataRightsRequest, now: datetime | None = None) -> bool:
    if request.status not in _OPEN_STATUSES:
        return False
    now = now or datetime.now(timezone.utc)
    return effective_deadline(request) < now


async def create_data_rights_request(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    jurisdiction: str | None,
    right_type: str,
    user_id: UUID | None = None,
    specific_request: str | None = None,
) -> DataRightsRequest:
    resolved = parse_jurisdiction(jurisdiction)
    validate_right_type(resolved, right_type)
    await ensure_reference(session, "auth.users", user_id, source="compliance.data_rights_requests.user_id")
    request = await compliance_repo.create_request(
        session,
        email=email.strip().lower(),
        name=name.strip(),
        jurisdiction=resolved,
        right_type=right_type,
        user_id=user_id,
        specific_request=specific_request,
    )
    logger.info(
        "data_rights_request_created id=%s jurisdiction=%s right_type=%s",
        request.id,
        resolved,
        right_type,
    )
    return request


async def transition_request(
    session: AsyncSession,
    request: DataRightsRequest,
    status: str,
    *,
    decision: str | None = None,
    explanation: str | None = None,
    appeal_reason: str | None = None,
) -> DataRightsRequest:
    DATA_RIGHTS_REQUEST.require_transition(request.status, status)
    now = datetime.now(timezone.utc)
    request.status = status
    if status in {"resolved", "denied"}:
        request.resolved_at = now
        request.decision = decision or status
        request.explanation = explanation
    elif status == "appealed":
        request.appealed_at = now
        request.appeal_reason = appeal_reason
    elif status == "in_progress" and not request.identity_verified:
        request.identity_verified = True
        request.identity_verified_at = now
    await session.flush()
    logger.info("data_rights_request_transitioned id=%s status=%s", request.id, status)
    return request
