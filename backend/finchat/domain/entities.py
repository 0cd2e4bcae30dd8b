from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, Literal

from ..models import TransactionModel
from .aggregation import PeriodTotals, category_breakdown, totals_for

TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["paid", "pending"]
Recurrence = Literal["none", "monthly", "weekly", "yearly"]


@dataclass(slots=True)
class Transaction:
    """Plain ledger entry detached from the ORM session."""

    id: int | None
    amount: float
    date: date
    category: str
    type: TransactionType
    status: TransactionStatus = "paid"
    description: str = ""
    tx_code: str | None = None
    subcategory: str | None = None
    recurrence: Recurrence = "none"
    is_fixed: bool = False
    due_date: date | None = None
    user_id: int | None = None
    period_label: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    def tagged(self, label: str) -> Transaction:
        return replace(self, period_label=label)

    def to_dict(self) -> dict[str, object]:
        """Convert the transaction to a serialisable dictionary."""
        data: dict[str, object] = {
            "id": self.id,
            "tx_code": self.tx_code,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "category": self.category,
            "subcategory": self.subcategory,
            "type": self.type,
            "status": self.status,
            "recurrence": self.recurrence,
            "is_fixed": self.is_fixed,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        }
        if self.period_label is not None:
            data["period_label"] = self.period_label
        return data


@dataclass(slots=True)
class LedgerReport:
    start_date: date | None
    end_date: date | None
    totals: PeriodTotals
    top_category: str | None
    transactions: list[Transaction] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "totals": self.totals.to_dict(),
            "top_category": self.top_category,
            "transactions": [t.to_dict() for t in self.transactions],
        }


class ReportGenerator(ABC):
    """Turns a window of transactions into a downloadable document."""

    media_type: str = "application/octet-stream"

    def generate(
        self,
        transactions: Iterable[Transaction],
        start_date: date | None,
        end_date: date | None,
    ) -> LedgerReport:
        rows = list(transactions)
        breakdown = category_breakdown(rows, "expense")
        return LedgerReport(
            start_date=start_date,
            end_date=end_date,
            totals=totals_for(rows, label="Total"),
            top_category=breakdown[0].name if breakdown else None,
            transactions=rows,
        )

    @abstractmethod
    def export(self, report: LedgerReport) -> bytes:
        """Serialize a report to bytes."""


class CSVReportGenerator(ReportGenerator):
    """One summary block followed by the transaction rows."""

    media_type = "text/csv"

    def export(self, report: LedgerReport) -> bytes:
        from io import StringIO
        import csv

        totals = report.totals
        buffer = StringIO()
        writer = csv.writer(buffer)
        writer.writerow(
            ["Start", "End", "Paid Income", "Pending Income", "Paid Expenses", "Pending Expenses", "Balance", "Projected", "Top Category"]
        )
        writer.writerow(
            [
                report.start_date.isoformat() if report.start_date else "",
                report.end_date.isoformat() if report.end_date else "",
                f"{totals.realized_income:.2f}",
                f"{totals.pending_income:.2f}",
                f"{totals.realized_expense:.2f}",
                f"{totals.pending_expense:.2f}",
                f"{totals.current_balance:.2f}",
                f"{totals.projected_balance:.2f}",
                report.top_category or "",
            ]
        )
        writer.writerow([])
        writer.writerow(
            ["Code", "Date", "Type", "Status", "Category", "Subcategory", "Amount", "Recurrence", "Fixed", "Description"]
        )
        for txn in report.transactions:
            writer.writerow(
                [
                    txn.tx_code or "",
                    txn.date.isoformat(),
                    txn.type,
                    txn.status,
                    txn.category,
                    txn.subcategory or "",
                    f"{txn.amount:.2f}",
                    txn.recurrence,
                    "yes" if txn.is_fixed else "no",
                    txn.description,
                ]
            )
        return buffer.getvalue().encode("utf-8")


class JSONReportGenerator(ReportGenerator):
    """JSON export implementation."""

    media_type = "application/json"

    def export(self, report: LedgerReport) -> bytes:
        import json

        return json.dumps(report.to_dict(), indent=2).encode("utf-8")


REPORT_GENERATORS: dict[str, ReportGenerator] = {
    "csv": CSVReportGenerator(),
    "json": JSONReportGenerator(),
}


def domain_transaction_from_model(model: object) -> Transaction:
    if not isinstance(model, TransactionModel):
        raise TypeError("Expected TransactionModel instance.")

    return Transaction(
        id=model.id,
        user_id=model.user_id,
        tx_code=model.tx_code,
        amount=float(model.amount),
        date=model.date,
        category=model.category,
        subcategory=model.subcategory,
        type=model.kind.value,
        status=model.status.value,
        recurrence=model.recurrence.value,
        is_fixed=bool(model.is_fixed),
        description=model.description or "",
        due_date=model.due_date,
    )
