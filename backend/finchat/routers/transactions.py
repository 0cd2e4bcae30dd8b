import logging
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import crud
from ..config import Settings, get_settings
from ..db import get_db
from ..domain.entities import REPORT_GENERATORS, domain_transaction_from_model
from ..models import TransactionModel, UserModel
from ..schemas import TransactionCreate, TransactionOut, TransactionStatus, TransactionType, TransactionUpdate
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me/transactions", tags=["transactions"])


def _to_out(transaction: TransactionModel) -> TransactionOut:
    return TransactionOut.model_validate(domain_transaction_from_model(transaction))


def _own_transaction(db: Session, transaction_id: int, user: UserModel) -> TransactionModel:
    transaction = crud.get_transaction(db, transaction_id, [user.id])
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found.")
    return transaction


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(
    data: TransactionCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: UserModel = Depends(get_current_user),
) -> TransactionOut:
    code = crud.reserve_tx_code(db, current_user.id, settings.tx_code_attempts)
    transaction = crud.create_transaction(db, current_user.id, data, code)
    return _to_out(transaction)


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    db: Session = Depends(get_db),
    category: str | None = Query(default=None),
    type_: TransactionType | None = Query(default=None, alias="type"),
    status_: TransactionStatus | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    current_user: UserModel = Depends(get_current_user),
) -> list[TransactionOut]:
    transactions = crud.list_transactions(
        db,
        crud.ledger_owner_ids(db, current_user),
        category=category,
        type_=type_,
        status=status_,
        start_date=start_date,
        end_date=end_date,
    )
    return [_to_out(tx) for tx in transactions]


@router.delete("", status_code=status.HTTP_200_OK)
def clear_transactions(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> dict[str, int]:
    deleted = crud.delete_transactions_for_user(db, current_user.id)
    logger.info("User %s cleared %s transactions", current_user.id, deleted)
    return {"deleted": deleted}


@router.get("/export/{format}", response_class=Response)
def export_transactions(
    format: Literal["csv", "json"],
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> Response:
    rows = crud.list_domain_transactions(
        db,
        crud.ledger_owner_ids(db, current_user),
        start_date=start_date,
        end_date=end_date,
    )
    generator = REPORT_GENERATORS[format]
    content = generator.export(generator.generate(rows, start_date, end_date))

    filename = f"transactions.{format}"
    return Response(
        content=content,
        media_type=generator.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> TransactionOut:
    transaction = crud.get_transaction(db, transaction_id, crud.ledger_owner_ids(db, current_user))
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found.")
    return _to_out(transaction)


@router.put("/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> TransactionOut:
    transaction = _own_transaction(db, transaction_id, current_user)
    updated = crud.update_transaction(db, transaction, data)
    return _to_out(updated)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
) -> None:
    transaction = _own_transaction(db, transaction_id, current_user)
    crud.delete_transaction(db, transaction)
