"""
Translate (field, value, operator) triples into JSONPath filter queries.
"""

from __future__ import annotations

import enum
from decimal import Decimal
from datetime import date, datetime, time, timezone
from typing import Any

from .documents import PRIMARY_ID_KEY


class Operator(str, enum.Enum):
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="


def format_datetime(value: datetime) -> str:
    """
    Render as yyyy-MM-ddTHH:mm:ss.fffffffK: seven fractional digits, then "Z"
    for UTC, "+HH:MM" for other offsets and nothing for naive values.
    """
    text = value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond:06d}0"
    offset = value.utcoffset()
    if offset is None:
        return text
    if value.tzinfo is timezone.utc:
        return text + "Z"
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def format_value(value: Any) -> str:
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if isinstance(value, datetime):
        return f"'{format_datetime(value)}'"
    if isinstance(value, date):
        return f"'{format_datetime(datetime.combine(value, time()))}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, enum.Enum):
        return format_value(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def build_path_query(field: str, value: Any, operator: Operator | str = Operator.EQUAL) -> str:
    """
    Build `$[?(@.<field> <op> <literal>)]`.

    The field is not checked against any record type; unknown fields simply
    match nothing.
    """
    op = Operator(operator)
    return f"$[?(@.{field} {op.value} {format_value(value)})]"


def id_query(doc_id: int) -> str:
    return build_path_query(PRIMARY_ID_KEY, doc_id, Operator.EQUAL)


ALL_QUERY = build_path_query(PRIMARY_ID_KEY, 0, Operator.GREATER_THAN)
