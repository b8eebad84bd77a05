from __future__ import annotations

import pytest

from acclms.services.order_numbers import format_order_number, is_valid_order_number, parse_order_number


def test_format_pads_sequence_to_six_digits() -> None:
    assert format_order_number(2026, 42) == "ORD-2026-000042"


def test_sequence_widens_instead_of_truncating() -> None:
    value = format_order_number(2026, 1_234_567)
    assert value == "ORD-2026-1234567"
    assert is_valid_order_number(value)
    assert parse_order_number(value) == (2026, 1_234_567)


def test_invalid_numbers_are_rejected() -> None:
    assert not is_valid_order_number("ORD-26-000001")
    assert not is_valid_order_number("ORD-2026-00001")
    assert not is_valid_order_number("INV-2026-000001")
    with pytest.raises(ValueError):
        parse_order_number("ORD-2026-abc")
    with pytest.raises(ValueError):
        format_order_number(2026, 0)
