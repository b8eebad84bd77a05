from __future__ import annotations

import pytest

from acclms.core.errors import InvalidStateTransitionError
from acclms.domain import states


def test_order_lifecycle_edges() -> None:
    assert states.ORDER.can_transition("pending", "processing")
    assert states.ORDER.can_transition("paid", "refunded")
    assert not states.ORDER.can_transition("cancelled", "paid")
    assert states.ORDER.is_terminal("refunded")


def test_require_transition_raises_with_context() -> None:
    with pytest.raises(InvalidStateTransitionError) as excinfo:
        states.ENROLLMENT.require_transition("refunded", "active")
    assert excinfo.value.entity == "enrollment"
    assert excinfo.value.current == "refunded"
    assert excinfo.value.requested == "active"


def test_unknown_target_status_is_rejected() -> None:
    with pytest.raises(InvalidStateTransitionError):
        states.INVOICE.require_transition("draft", "archived")


def test_check_sql_lists_every_status() -> None:
    assert states.LESSON_PROGRESS.check_sql() == "status IN ('not_started', 'in_progress', 'completed')"


def test_transitions_must_reference_declared_statuses() -> None:
    with pytest.raises(ValueError):
        states.StateMachine(entity="x", statuses=("a",), transitions={"a": frozenset({"b"})})


def test_data_rights_requests_can_be_appealed_after_decision() -> None:
    assert states.DATA_RIGHTS_REQUEST.can_transition("denied", "appealed")
    assert states.DATA_RIGHTS_REQUEST.can_transition("appealed", "resolved")
    assert not states.DATA_RIGHTS_REQUEST.can_transition("expired", "in_progress")
