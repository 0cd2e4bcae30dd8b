from datetime import date, timedelta
from typing import Callable

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud
from ..dates import range_bounds
from ..db import get_db
from ..domain.aggregation import category_totals_by_type, daily_flow, summarize, totals_for
from ..models import UserModel
from ..schemas import CategoryTotalOut, DashboardSummary, RangePreset, TransactionType
from ..security import get_current_user

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_today() -> Callable[[], date]:
    return date.today


def carried_balance(db: Session, owner_ids: list[int], start_date: date | None) -> float:
    """Realized balance of everything dated before ``start_date``."""
    if start_date is None:
        return 0.0
    earlier = crud.list_domain_transactions(db, owner_ids, end_date=start_date - timedelta(days=1))
    return totals_for(earlier, "Before").current_balance


@router.get("/summary", response_model=DashboardSummary)
def get_summary(
    range_: RangePreset = Query(default="this_month", alias="range"),
    chart: TransactionType = Query(default="expense"),
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_today),
    current_user: UserModel = Depends(get_current_user),
) -> DashboardSummary:
    start_date, end_date = range_bounds(range_, clock())
    owner_ids = crud.ledger_owner_ids(db, current_user)
    rows = crud.list_domain_transactions(db, owner_ids, start_date=start_date, end_date=end_date)

    summary = summarize(
        rows,
        chart_type=chart,
        previous_balance=carried_balance(db, owner_ids, start_date),
    )
    return DashboardSummary(
        range=range_,
        start_date=start_date,
        end_date=end_date,
        has_data=summary.has_data,
        totals=summary.total.to_dict(),
        categories=[share.to_dict() for share in summary.categories],
        daily_flow=daily_flow(rows),
    )


@router.get("/categories", response_model=list[CategoryTotalOut])
def get_category_totals(
    range_: RangePreset = Query(default="this_month", alias="range"),
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_today),
    current_user: UserModel = Depends(get_current_user),
) -> list[CategoryTotalOut]:
    start_date, end_date = range_bounds(range_, clock())
    rows = crud.list_domain_transactions(
        db, crud.ledger_owner_ids(db, current_user), start_date=start_date, end_date=end_date
    )
    return [CategoryTotalOut(**entry) for entry in category_totals_by_type(rows)]
