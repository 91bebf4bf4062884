"""Compose optional query criteria into a single SQLAlchemy predicate.

Each entity declares its filterable columns once, as a tuple of
:class:`FilterField`. :func:`build_filter_predicate` walks that table and, for
every criterion that is present and non-empty, adds one constraint according to
the field's :class:`MatchKind`. Constraints are AND-ed; a soft-deletable entity
always gets a ``deleted`` constraint, defaulting to "not deleted".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import and_, false, true
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql.elements import ColumnElement


logger = logging.getLogger("medlab.filtering")

DATETIME_FORMATS: tuple[str, ...] = ("%Y-%m-%d %H:%M:%S.%f",)
# Fractional seconds carry five or six digits.
DATETIME_SHAPE = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{5,6}")
DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d",)


class MatchKind(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    DATETIME = "datetime"
    DATE = "date"
    MEMBER = "member"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class FilterField:
    name: str
    match: MatchKind
    column: Any
    # MEMBER fields compare ``relationship.any(member_column == value)``.
    member_column: Any = None


def parse_datetime(value: str, formats: Sequence[str] = DATETIME_FORMATS) -> datetime | None:
    if DATETIME_SHAPE.fullmatch(value) is None:
        return None
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: str, formats: Sequence[str] = DATE_FORMATS) -> date | None:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _constraint(field: FilterField, value: Any) -> ColumnElement[bool] | None:
    column: InstrumentedAttribute[Any] = field.column

    if field.match is MatchKind.EXACT:
        return column == value
    if field.match is MatchKind.PARTIAL:
        return column.contains(str(value), autoescape=True)
    if field.match is MatchKind.DATETIME:
        parsed = value if isinstance(value, datetime) else parse_datetime(str(value))
        if parsed is None:
            logger.debug("filter.date_ignored", extra={"entity": field.name, "error": str(value)})
            return None
        return column == parsed
    if field.match is MatchKind.DATE:
        parsed_date = value if isinstance(value, date) else parse_date(str(value))
        if parsed_date is None:
            logger.debug("filter.date_ignored", extra={"entity": field.name, "error": str(value)})
            return None
        return column == parsed_date
    if field.match is MatchKind.MEMBER:
        return column.any(field.member_column == value)
    raise ValueError(f"unsupported match kind for field '{field.name}': {field.match}")


def build_filter_predicate(
    fields: Sequence[FilterField],
    criteria: Mapping[str, Any],
) -> ColumnElement[bool]:
    """Return the AND of every constraint the present criteria imply.

    Unknown criteria names are ignored. The inputs are not modified and the
    result depends only on them, so the same criteria can be rebuilt freely.
    """
    constraints: list[ColumnElement[bool]] = []

    for field in fields:
        value = criteria.get(field.name)

        if field.match is MatchKind.DELETED:
            if value is None:
                constraints.append(field.column.is_(false()))
            else:
                constraints.append(field.column == bool(value))
            continue

        if _is_blank(value):
            continue

        constraint = _constraint(field, value)
        if constraint is not None:
            constraints.append(constraint)

    if not constraints:
        return true()
    return and_(*constraints)
