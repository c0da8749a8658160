from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from memberportal.models import FeeState, MemberOut
from memberportal.services.members import roster

BOM = "\ufeff"
EXPORT_FILENAME = "EldsalMemberList.csv"

PROFILE_COLUMNS = (
    ("First name", "given_name"),
    ("Surname", "family_name"),
    ("Email", "email"),
    ("Birth date", "birth_date"),
    ("Phone number", "phone_number"),
    ("Address", "address_line_1"),
    ("Address (line 2)", "address_line_2"),
    ("Postal code", "postal_code"),
    ("City", "city"),
    ("Country", "country"),
)


def _fee_labels(short: str, normalized_interval: str, method_label: str) -> List[str]:
    return [
        f"{short} payed",
        f"{short} period start",
        f"{short} period end",
        f"{short} interval",
        f"{short} amount",
        f"{short} amount / {normalized_interval}",
        f"{short} currency",
        method_label,
    ]


MEMBERSHIP_LABELS = _fee_labels("MS", "year", "MS payment method")
HOUSECARD_LABELS = _fee_labels("HC", "month", "House card payment method")

COLUMNS = [label for label, _ in PROFILE_COLUMNS] + MEMBERSHIP_LABELS + HOUSECARD_LABELS


def format_date(value: Optional[date]) -> Optional[str]:
    # sv-SE renders dates as YYYY-MM-DD
    return value.isoformat() if value else None


def format_interval(interval: Optional[str], count: Optional[int]) -> str:
    if not interval or not count or count <= 0:
        return ""
    return f"{count} {interval}" + ("" if count == 1 else "s")


def format_amount(value: Optional[float]) -> Optional[Any]:
    if value is None:
        return None
    if float(value).is_integer():
        return int(value)
    return round(value, 2)


def fee_columns(state: FeeState, labels: List[str]) -> Dict[str, Any]:
    values = [
        "Yes" if state.paid else "No",
        format_date(state.period_start),
        format_date(state.period_end),
        format_interval(state.interval, state.interval_count),
        state.amount,
        format_amount(state.normalized_amount),
        state.currency,
        state.method_name,
    ]
    return dict(zip(labels, values))


def export_row(member: MemberOut) -> Dict[str, Any]:
    row: Dict[str, Any] = {label: getattr(member, attr) for label, attr in PROFILE_COLUMNS}
    row.update(fee_columns(member.payments.membership, MEMBERSHIP_LABELS))
    row.update(fee_columns(member.payments.housecard, HOUSECARD_LABELS))
    return row


def export_rows(users: Iterable[Mapping[str, Any]], connection: Optional[str] = None, today: Optional[date] = None) -> List[Dict[str, Any]]:
    return [export_row(m) for m in roster(users, connection=connection, today=today)]


def rows_to_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=COLUMNS, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    return BOM + buf.getvalue()
