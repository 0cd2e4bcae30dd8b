"""Calendar helpers shared by the intake prompt, the oracle coercion and the dashboard."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta

NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "um": 1,
    "uma": 1,
    "dois": 2,
    "duas": 2,
    "três": 3,
    "tres": 3,
}

# Longer phrases first: "anteontem" contains "ontem".
DAY_OFFSETS = (
    ("day before yesterday", -2),
    ("anteontem", -2),
    ("yesterday", -1),
    ("ontem", -1),
    ("tomorrow", 1),
    ("amanhã", 1),
    ("amanha", 1),
    ("today", 0),
    ("hoje", 0),
)

RECURRENCE_KEYWORDS = {
    "monthly": ("monthly", "every month", "each month", "mensal", "mensalmente", "todo mês", "todo mes"),
    "weekly": ("weekly", "every week", "each week", "semanal", "semanalmente", "toda semana"),
    "yearly": ("yearly", "annual", "annually", "every year", "anual", "anualmente", "todo ano"),
}

_DAY_MONTH = re.compile(r"\b(\d{1,2})[/.-](\d{1,2})(?:[/.-](\d{2,4}))?\b")
_AGO = re.compile(r"\b(\d+|[a-zà-ú]+)\s+(day|week|dia|semana)s?\s+(?:ago|atrás|atras)\b")


@dataclass(frozen=True, slots=True)
class ReferenceFrame:
    """Dates handed to the oracle so it can resolve relative expressions."""

    today: date

    @property
    def yesterday(self) -> date:
        return self.today - timedelta(days=1)

    @property
    def day_before_yesterday(self) -> date:
        return self.today - timedelta(days=2)

    @property
    def tomorrow(self) -> date:
        return self.today + timedelta(days=1)

    @property
    def year(self) -> int:
        return self.today.year


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def subtract_months(base: date, months: int) -> date:
    new_month_index = base.year * 12 + base.month - 1 - months
    year = new_month_index // 12
    month = new_month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def first_of_previous_month(today: date) -> date:
    return subtract_months(today.replace(day=1), 1)


def _quantity(token: str) -> int | None:
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS.get(token)


def _explicit_date(text: str, today: date) -> date | None:
    match = _DAY_MONTH.search(text)
    if not match:
        return None
    day, month = int(match.group(1)), int(match.group(2))
    year = today.year
    if match.group(3):
        year = int(match.group(3))
        if year < 100:
            year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def resolve_relative_date(text: str, today: date) -> date | None:
    """Turn a date expression into a calendar date, or None when nothing matches.

    ISO dates are returned as given, ``dd/mm`` without a year lands in the
    current year, and relative phrases are resolved against ``today``.
    """
    if not text:
        return None
    cleaned = text.strip()
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        pass

    lowered = cleaned.lower()
    for phrase, offset in DAY_OFFSETS:
        if phrase in lowered:
            return today + timedelta(days=offset)

    if "last week" in lowered or "semana passada" in lowered:
        return today - timedelta(weeks=1)
    if "last month" in lowered or "mês passado" in lowered or "mes passado" in lowered:
        return first_of_previous_month(today)

    match = _AGO.search(lowered)
    if match:
        quantity = _quantity(match.group(1))
        if quantity is not None:
            unit = match.group(2)
            days = quantity * 7 if unit in {"week", "semana"} else quantity
            return today - timedelta(days=days)

    return _explicit_date(lowered, today)


def default_status(tx_date: date, today: date) -> str:
    """Future-dated entries are still to be paid or received."""
    return "pending" if tx_date > today else "paid"


def normalize_recurrence(value: object) -> str:
    if value is None:
        return "none"
    lowered = str(value).strip().lower()
    if not lowered or lowered in {"none", "null", "no", "nenhuma"}:
        return "none"
    for recurrence, keywords in RECURRENCE_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return recurrence
    return "none"


def range_bounds(preset: str, today: date) -> tuple[date | None, date | None]:
    """Inclusive window for a dashboard range preset; ``(None, None)`` means everything."""
    if preset == "today":
        return today, today
    if preset == "7_days":
        # The rolling week never reaches back into the previous year.
        start = max(today - timedelta(days=6), date(today.year, 1, 1))
        return start, today
    if preset == "this_month":
        return month_bounds(today.year, today.month)
    if preset == "this_year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if preset == "all":
        return None, None
    raise ValueError(f"Unknown range preset: {preset}")
