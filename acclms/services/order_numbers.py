from __future__ import annotations

import re


ORDER_NUMBER_PREFIX = "ORD"
ORDER_NUMBER_MIN_DIGITS = 6
# Mirrors ck_orders_number_format; the numeric part widens past six digits.
ORDER_NUMBER_PATTERN = re.compile(r"^ORD-(?P<year>[0-9]{4})-(?P<sequence>[0-9]{6,})$")


def format_order_number(year: int, sequence: int) -> str:
    # Same output as payments.generate_order_number() for a given year and nextval.
    if not 0 <= year <= 9999:
        raise ValueError(f"year out of range: {year}")
    if sequence < 1:
        raise ValueError(f"sequence must be positive: {sequence}")
    return f"{ORDER_NUMBER_PREFIX}-{year:04d}-{sequence:0{ORDER_NUMBER_MIN_DIGITS}d}"


def parse_order_number(value: str) -> tuple[int, int]:
    match = ORDER_NUMBER_PATTERN.match(value)
    if match is None:
        raise ValueError(f"invalid order number: {value!r}")
    return int(match.group("year")), int(match.group("sequence"))


def is_valid_order_number(value: str) -> bool:
    return ORDER_NUMBER_PATTERN.match(value) is not None
