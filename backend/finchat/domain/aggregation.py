"""KPI math over an already fetched list of transactions.

Everything here is a pure function of its inputs. Rows only need the
``amount``, ``type``, ``status``, ``category`` and ``date`` attributes, plus
``period_label`` for :func:`query_digest`.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from .entities import Transaction


@dataclass(frozen=True, slots=True)
class Period:
    """Inclusive date window; a missing bound leaves that side open."""

    start_date: date | None
    end_date: date | None
    label: str = "Period"

    def contains(self, day: date) -> bool:
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(slots=True)
class PeriodTotals:
    label: str
    count: int = 0
    realized_income: float = 0.0
    pending_income: float = 0.0
    realized_expense: float = 0.0
    pending_expense: float = 0.0
    previous_balance: float = 0.0

    @property
    def income(self) -> float:
        return self.realized_income + self.pending_income

    @property
    def expense(self) -> float:
        return self.realized_expense + self.pending_expense

    @property
    def current_balance(self) -> float:
        return self.previous_balance + self.realized_income - self.realized_expense

    @property
    def projected_balance(self) -> float:
        return self.current_balance + self.pending_income - self.pending_expense

    def to_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "count": self.count,
            "income": round(self.income, 2),
            "expense": round(self.expense, 2),
            "realized_income": round(self.realized_income, 2),
            "pending_income": round(self.pending_income, 2),
            "realized_expense": round(self.realized_expense, 2),
            "pending_expense": round(self.pending_expense, 2),
            "previous_balance": round(self.previous_balance, 2),
            "current_balance": round(self.current_balance, 2),
            "projected_balance": round(self.projected_balance, 2),
        }


@dataclass(frozen=True, slots=True)
class CategoryShare:
    name: str
    amount: float
    share: float

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "amount": round(self.amount, 2), "share": round(self.share, 2)}


@dataclass(slots=True)
class LedgerSummary:
    total: PeriodTotals
    periods: list[PeriodTotals] = field(default_factory=list)
    categories: list[CategoryShare] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.total.count > 0


def percentage(part: float, whole: float) -> float:
    """Share of ``whole`` in percent; an empty whole reports 0."""
    if not whole:
        return 0.0
    return part / whole * 100


def filter_by_type(transactions: Iterable[Transaction], type_filter: str | None) -> list[Transaction]:
    if type_filter in (None, "", "all"):
        return list(transactions)
    return [t for t in transactions if t.type == type_filter]


def totals_for(transactions: Iterable[Transaction], label: str, previous_balance: float = 0.0) -> PeriodTotals:
    totals = PeriodTotals(label=label, previous_balance=previous_balance)
    for txn in transactions:
        amount = float(txn.amount)
        totals.count += 1
        paid = txn.status == "paid"
        if txn.type == "income":
            if paid:
                totals.realized_income += amount
            else:
                totals.pending_income += amount
        elif paid:
            totals.realized_expense += amount
        else:
            totals.pending_expense += amount
    return totals


def category_breakdown(transactions: Iterable[Transaction], type_: str = "expense") -> list[CategoryShare]:
    amounts: defaultdict[str, float] = defaultdict(float)
    for txn in transactions:
        if txn.type == type_:
            amounts[txn.category] += float(txn.amount)
    whole = sum(amounts.values())
    ordered = sorted(amounts.items(), key=lambda item: item[1], reverse=True)
    return [CategoryShare(name=name, amount=amount, share=percentage(amount, whole)) for name, amount in ordered]


def summarize(
    transactions: Iterable[Transaction],
    periods: Sequence[Period] = (),
    type_filter: str | None = None,
    chart_type: str = "expense",
    previous_balance: float = 0.0,
) -> LedgerSummary:
    """Per-period and overall KPIs plus the category chart for one window.

    With periods, a row counts once for every period whose range holds its
    date, so the overall figures are the concatenation of the periods.
    """
    selected = filter_by_type(transactions, type_filter)
    if not periods:
        total = totals_for(selected, "Total", previous_balance)
        return LedgerSummary(total=total, categories=category_breakdown(selected, chart_type))

    per_period: list[PeriodTotals] = []
    in_window: list[Transaction] = []
    for period in periods:
        rows = [t for t in selected if period.contains(t.date)]
        in_window.extend(rows)
        per_period.append(totals_for(rows, period.label))

    return LedgerSummary(
        total=totals_for(in_window, "Total", previous_balance),
        periods=per_period,
        categories=category_breakdown(in_window, chart_type),
    )


def daily_flow(transactions: Iterable[Transaction]) -> list[dict[str, object]]:
    """Income and expense per calendar day, oldest first."""
    days: dict[date, dict[str, float]] = {}
    for txn in transactions:
        bucket = days.setdefault(txn.date, {"income": 0.0, "expense": 0.0})
        bucket[txn.type] += float(txn.amount)
    return [
        {"date": day.isoformat(), "income": round(values["income"], 2), "expense": round(values["expense"], 2)}
        for day, values in sorted(days.items())
    ]


def category_totals_by_type(transactions: Iterable[Transaction]) -> list[dict[str, object]]:
    totals: dict[tuple[str, str], dict[str, object]] = {}
    for txn in transactions:
        entry = totals.setdefault(
            (txn.category, txn.type),
            {"category": txn.category, "type": txn.type, "total": 0.0, "count": 0},
        )
        entry["total"] = float(entry["total"]) + float(txn.amount)
        entry["count"] = int(entry["count"]) + 1
    return sorted(totals.values(), key=lambda item: float(item["total"]), reverse=True)


def query_digest(
    tagged_rows: Sequence[Transaction],
    periods: Sequence[Period],
    query_type: str,
    filter_type: str,
    sample_size: int = 30,
) -> dict[str, object]:
    """Compact numbers handed to the analyst prompt for a chat question.

    ``tagged_rows`` is the concatenation of each period's fetch, every row
    carrying the label of the period it was fetched for.
    """
    by_period = []
    for period in periods:
        rows = [t for t in tagged_rows if t.period_label == period.label]
        totals = totals_for(rows, period.label)
        by_period.append(
            {
                "label": period.label,
                "count": totals.count,
                "income": round(totals.income, 2),
                "expense": round(totals.expense, 2),
            }
        )
    overall = totals_for(tagged_rows, "Total")
    return {
        "query_type": query_type,
        "filter_type": filter_type,
        "periods": [period.to_dict() for period in periods],
        "total_transactions": overall.count,
        "total_income": round(overall.income, 2),
        "total_expense": round(overall.expense, 2),
        "pending_income": round(overall.pending_income, 2),
        "pending_expense": round(overall.pending_expense, 2),
        "by_period": by_period,
        "expense_categories": [share.to_dict() for share in category_breakdown(tagged_rows, "expense")],
        "transactions": [t.to_dict() for t in tagged_rows[:sample_size]],
    }
