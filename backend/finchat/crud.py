import secrets
import string
import uuid
from datetime import date
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .domain.entities import Transaction, domain_transaction_from_model
from .models import (
    CategoryModel,
    InvitationModel,
    InvitationStatus,
    Recurrence,
    TransactionKind,
    TransactionModel,
    TransactionStatus,
    UserModel,
)
from .schemas import CategoryCreate, TransactionCreate, TransactionType, TransactionUpdate

TX_CODE_ALPHABET = string.ascii_uppercase + string.digits
TX_CODE_LENGTH = 5


def get_user(db: Session, user_id: int) -> UserModel | None:
    return db.get(UserModel, user_id)


def get_user_by_telegram_id(db: Session, telegram_id: int) -> UserModel | None:
    return db.scalar(select(UserModel).where(UserModel.telegram_id == telegram_id))


def get_user_by_credentials(db: Session, phones: Sequence[str], password: str) -> UserModel | None:
    candidates = db.scalars(select(UserModel).where(UserModel.phone_number.in_(list(phones))))
    for user in candidates:
        if user.password and secrets.compare_digest(user.password, password):
            return user
    return None


def upsert_user_from_contact(db: Session, telegram_id: int, phone_number: str, full_name: str) -> UserModel:
    user = get_user_by_telegram_id(db, telegram_id)
    if user is None:
        user = UserModel(telegram_id=telegram_id, phone_number=phone_number, full_name=full_name)
        db.add(user)
    else:
        user.phone_number = phone_number
        user.full_name = full_name
    db.commit()
    db.refresh(user)
    return user


def set_user_password(db: Session, user_id: int, password: str) -> bool:
    """Store the dashboard password once; an existing password is never replaced."""
    result = db.execute(
        update(UserModel)
        .where(UserModel.id == user_id, UserModel.password.is_(None))
        .values(password=password)
    )
    db.commit()
    return result.rowcount == 1


def update_user_name(db: Session, user: UserModel, full_name: str) -> UserModel:
    user.full_name = full_name
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: UserModel) -> None:
    db.delete(user)
    db.commit()


def list_family_members(db: Session, family_id: str) -> list[UserModel]:
    return list(db.scalars(select(UserModel).where(UserModel.family_id == family_id).order_by(UserModel.full_name)))


def ledger_owner_ids(db: Session, user: UserModel) -> list[int]:
    """Users whose transactions make up this user's ledger (the whole family when shared)."""
    if not user.family_id:
        return [user.id]
    return [member.id for member in list_family_members(db, user.family_id)] or [user.id]


def generate_tx_code() -> str:
    return "".join(secrets.choice(TX_CODE_ALPHABET) for _ in range(TX_CODE_LENGTH))


def reserve_tx_code(db: Session, user_id: int, attempts: int = 5) -> str:
    """Draw codes until one is unused by this user, keeping the last draw after ``attempts``."""
    code = generate_tx_code()
    for _ in range(max(attempts, 1) - 1):
        if get_transaction_by_code(db, user_id, code) is None:
            break
        code = generate_tx_code()
    return code


def create_transaction(db: Session, user_id: int, data: TransactionCreate, tx_code: str) -> TransactionModel:
    transaction = TransactionModel(
        user_id=user_id,
        tx_code=tx_code,
        amount=data.amount,
        description=data.description,
        category=data.category,
        subcategory=data.subcategory or None,
        kind=TransactionKind(data.type),
        status=TransactionStatus(data.status),
        recurrence=Recurrence(data.recurrence),
        is_fixed=data.is_fixed,
        date=data.date,
        due_date=data.due_date,
    )
    db.add(transaction)
    db.commit()
    db.refresh(transaction)
    return transaction


def get_transaction(db: Session, transaction_id: int, owner_ids: Sequence[int]) -> TransactionModel | None:
    stmt = select(TransactionModel).where(
        TransactionModel.id == transaction_id, TransactionModel.user_id.in_(list(owner_ids))
    )
    return db.scalar(stmt)


def get_transaction_by_code(db: Session, user_id: int, tx_code: str) -> TransactionModel | None:
    stmt = select(TransactionModel).where(
        TransactionModel.user_id == user_id, TransactionModel.tx_code == tx_code.upper()
    )
    return db.scalars(stmt).first()


def list_transactions(
    db: Session,
    owner_ids: Sequence[int],
    category: str | None = None,
    type_: TransactionType | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[TransactionModel]:
    stmt = select(TransactionModel).where(TransactionModel.user_id.in_(list(owner_ids)))

    if category:
        stmt = stmt.where(TransactionModel.category.ilike(category))
    if type_:
        stmt = stmt.where(TransactionModel.kind == TransactionKind(type_))
    if status:
        stmt = stmt.where(TransactionModel.status == TransactionStatus(status))
    if start_date:
        stmt = stmt.where(TransactionModel.date >= start_date)
    if end_date:
        stmt = stmt.where(TransactionModel.date <= end_date)

    stmt = stmt.order_by(TransactionModel.date.desc(), TransactionModel.id.desc())
    return list(db.scalars(stmt))


def list_domain_transactions(db: Session, owner_ids: Sequence[int], **filters: object) -> list[Transaction]:
    return [domain_transaction_from_model(tx) for tx in list_transactions(db, owner_ids, **filters)]


def update_transaction(
    db: Session,
    transaction: TransactionModel,
    data: TransactionUpdate,
) -> TransactionModel:
    # Only the optional columns may be cleared with an explicit null.
    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in {"subcategory", "due_date"}
    }
    if "type" in changes:
        changes["kind"] = TransactionKind(changes.pop("type"))
    if "status" in changes:
        changes["status"] = TransactionStatus(changes["status"])
    if "recurrence" in changes:
        changes["recurrence"] = Recurrence(changes["recurrence"])

    if changes:
        stmt = (
            update(TransactionModel)
            .where(TransactionModel.id == transaction.id)
            .values(**changes)
            .execution_options(synchronize_session="fetch")
        )
        db.execute(stmt)
        db.commit()
        db.refresh(transaction)
    return transaction


def delete_transaction(db: Session, transaction: TransactionModel) -> None:
    db.delete(transaction)
    db.commit()


def delete_transaction_by_code(db: Session, user_id: int, tx_code: str) -> Transaction | None:
    """Remove the user's transaction with this code and return what was removed."""
    model = get_transaction_by_code(db, user_id, tx_code)
    if model is None:
        return None
    removed = domain_transaction_from_model(model)
    db.delete(model)
    db.commit()
    return removed


def delete_transactions_for_user(db: Session, user_id: int) -> int:
    count = db.query(TransactionModel).filter(TransactionModel.user_id == user_id).delete()
    db.commit()
    return count


def list_categories(db: Session, user_id: int, type_: TransactionType | None = None) -> list[CategoryModel]:
    stmt = select(CategoryModel).where(CategoryModel.user_id == user_id)
    if type_:
        stmt = stmt.where(CategoryModel.kind == TransactionKind(type_))
    return list(db.scalars(stmt.order_by(CategoryModel.name)))


def get_category(db: Session, category_id: int, user_id: int) -> CategoryModel | None:
    return db.scalar(
        select(CategoryModel).where(CategoryModel.id == category_id, CategoryModel.user_id == user_id)
    )


def find_category(db: Session, user_id: int, name: str, type_: TransactionType) -> CategoryModel | None:
    return db.scalar(
        select(CategoryModel).where(
            CategoryModel.user_id == user_id,
            CategoryModel.name == name,
            CategoryModel.kind == TransactionKind(type_),
        )
    )


def create_category(db: Session, user_id: int, data: CategoryCreate) -> CategoryModel:
    category = CategoryModel(user_id=user_id, name=data.name, kind=TransactionKind(data.type))
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category: CategoryModel) -> None:
    db.delete(category)
    db.commit()


def create_invitation(db: Session, sender_id: int, receiver_phone: str) -> InvitationModel:
    invitation = InvitationModel(sender_id=sender_id, receiver_phone=receiver_phone)
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    return invitation


def get_invitation(db: Session, invitation_id: int) -> InvitationModel | None:
    return db.get(InvitationModel, invitation_id)


def list_received_invitations(db: Session, phones: Sequence[str]) -> list[InvitationModel]:
    if not phones:
        return []
    stmt = select(InvitationModel).where(
        InvitationModel.receiver_phone.in_(list(phones)),
        InvitationModel.status == InvitationStatus.PENDING,
    )
    return list(db.scalars(stmt.order_by(InvitationModel.id)))


def list_sent_invitations(db: Session, sender_id: int) -> list[InvitationModel]:
    stmt = select(InvitationModel).where(InvitationModel.sender_id == sender_id)
    return list(db.scalars(stmt.order_by(InvitationModel.id)))


def accept_invitation(db: Session, invitation: InvitationModel, receiver: UserModel) -> UserModel:
    """Join the sender's family, opening one for the sender if needed."""
    sender = invitation.sender
    if not sender.family_id:
        sender.family_id = uuid.uuid4().hex
    receiver.family_id = sender.family_id
    invitation.status = InvitationStatus.ACCEPTED
    db.commit()
    db.refresh(receiver)
    return receiver


def reject_invitation(db: Session, invitation: InvitationModel) -> InvitationModel:
    invitation.status = InvitationStatus.REJECTED
    db.commit()
    db.refresh(invitation)
    return invitation
