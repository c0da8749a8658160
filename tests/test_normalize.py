from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from memberportal.core.normalize import normalize_currency, parse_date, parse_int, split_roles


@pytest.mark.parametrize(
    "value, expected",
    [
        (3, 3),
        ("12", 12),
        (" 7 ", 7),
        ("-4", -4),
        (2.0, 2),
        (Decimal("5"), 5),
        ("9" * 18, 10**18 - 1),
    ],
)
def test_parse_int_accepts(value, expected):
    assert parse_int(value) == expected


@pytest.mark.parametrize(
    "value",
    [True, None, "", "1.5", "1e3", 2.5, float("nan"), float("inf"), Decimal("NaN"),
     "1" * 19, "1" * 5000, 10**18, -(10**30), 1e300, [], {}],
)
def test_parse_int_rejects(value):
    assert parse_int(value) is None


def test_parse_date_accepts_dates_and_timestamps():
    assert parse_date("2024-02-29") == date(2024, 2, 29)
    assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)
    assert parse_date(datetime(2024, 1, 1, 12)) == date(2024, 1, 1)
    assert parse_date("2024-01-01T00:00:00.000Z") == date(2024, 1, 1)
    assert parse_date("2024-01-01 23:00:00-05:00") == date(2024, 1, 2)


@pytest.mark.parametrize(
    "value",
    ["", "2023-02-29", "20240101", "2024-W01-1", "2024-001", "01/02/2024", "2024-01-01T25:00", 20240101,
     "0001-01-01T00:00:00+05:00"],
)
def test_parse_date_rejects(value):
    assert parse_date(value) is None


def test_currency_and_roles():
    assert normalize_currency(" sek ") == "SEK"
    assert normalize_currency("") is None
    assert split_roles("admin, dev,,member") == ["admin", "dev", "member"]
    assert split_roles(None) == []
