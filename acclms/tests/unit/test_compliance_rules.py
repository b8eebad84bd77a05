from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from acclms.core.errors import UnknownJurisdictionError, UnsupportedDataRightError
from acclms.domain.models import DataRightsRequest
from acclms.services.compliance import (
    LEGAL_DEADLINES,
    compute_deadline,
    effective_deadline,
    extend_deadline,
    is_overdue,
    legal_deadline,
    parse_jurisdiction,
    validate_right_type,
)


RECEIVED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _request(jurisdiction: str, status: str = "received") -> DataRightsRequest:
    return DataRightsRequest(
        id=uuid4(),
        email="subject@example.com",
        name="Data Subject",
        jurisdiction=jurisdiction,
        right_type="access",
        status=status,
        received_at=RECEIVED,
        deadline_at=compute_deadline(jurisdiction, RECEIVED),
        extended_deadline_at=None,
    )


def test_response_windows_per_jurisdiction() -> None:
    assert {name: rule.response_days for name, rule in LEGAL_DEADLINES.items()} == {
        "colombia": 15,
        "gdpr": 30,
        "ccpa": 45,
        "lgpd": 15,
        "general": 30,
    }
    assert compute_deadline("colombia", RECEIVED) == RECEIVED + timedelta(days=15)
    assert legal_deadline("gdpr").breach_notification_hours == 72


def test_aliases_and_fallback() -> None:
    assert parse_jurisdiction("CO") == "colombia"
    assert parse_jurisdiction(" eu ") == "gdpr"
    assert parse_jurisdiction("US-CA") == "ccpa"
    assert parse_jurisdiction("br") == "lgpd"
    assert parse_jurisdiction(None) == "general"
    assert parse_jurisdiction("mars") == "general"
    with pytest.raises(UnknownJurisdictionError):
        parse_jurisdiction("mars", strict=True)


def test_right_types_are_scoped_by_jurisdiction() -> None:
    validate_right_type("ccpa", "opt_out_sale")
    validate_right_type("gdpr", "portability")
    with pytest.raises(UnsupportedDataRightError):
        validate_right_type("colombia", "opt_out_sale")
    with pytest.raises(UnsupportedDataRightError):
        validate_right_type("gdpr", "teleport")


def test_extension_is_applied_once() -> None:
    request = _request("colombia", status="in_progress")
    extended = extend_deadline(request)
    assert extended == RECEIVED + timedelta(days=15 + 8)
    assert effective_deadline(request) == extended
    with pytest.raises(ValueError):
        extend_deadline(request)


def test_extension_is_refused_where_the_law_has_none() -> None:
    with pytest.raises(ValueError):
        extend_deadline(_request("lgpd"))
    with pytest.raises(ValueError):
        extend_deadline(_request("gdpr", status="resolved"))


def test_overdue_only_while_open() -> None:
    request = _request("colombia")
    assert is_overdue(request, RECEIVED + timedelta(days=16))
    assert not is_overdue(request, RECEIVED + timedelta(days=14))
    request.status = "resolved"
    assert not is_overdue(request, RECEIVED + timedelta(days=60))
