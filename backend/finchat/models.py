import datetime as dt
from enum import Enum as PyEnum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class TransactionKind(str, PyEnum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, PyEnum):
    PAID = "paid"
    PENDING = "pending"


class Recurrence(str, PyEnum):
    NONE = "none"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"


class InvitationStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    # Store the lowercase values, not the member names.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        validate_strings=True,
    )


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    telegram_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    password: Mapped[str | None] = mapped_column(String(6), nullable=True)
    family_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    transactions: Mapped[list["TransactionModel"]] = relationship(
        "TransactionModel", back_populates="user", cascade="all, delete-orphan"
    )
    categories: Mapped[list["CategoryModel"]] = relationship(
        "CategoryModel", back_populates="user", cascade="all, delete-orphan"
    )
    sent_invitations: Mapped[list["InvitationModel"]] = relationship(
        "InvitationModel", back_populates="sender", cascade="all, delete-orphan"
    )

    __table_args__ = (UniqueConstraint("telegram_id", name="uq_users_telegram_id"),)


class TransactionModel(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tx_code: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(120), nullable=False)
    subcategory: Mapped[str | None] = mapped_column(String(120), nullable=True)
    kind: Mapped[TransactionKind] = mapped_column(_enum(TransactionKind, "transaction_kind"), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        _enum(TransactionStatus, "transaction_status"), nullable=False, default=TransactionStatus.PAID
    )
    recurrence: Mapped[Recurrence] = mapped_column(
        _enum(Recurrence, "transaction_recurrence"), nullable=False, default=Recurrence.NONE
    )
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user: Mapped[UserModel] = relationship("UserModel", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )


class CategoryModel(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(_enum(TransactionKind, "category_kind"), nullable=False)

    user: Mapped[UserModel] = relationship("UserModel", back_populates="categories")

    __table_args__ = (UniqueConstraint("user_id", "name", "kind", name="uq_categories_user_name_kind"),)


class InvitationModel(Base):
    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_phone: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[InvitationStatus] = mapped_column(
        _enum(InvitationStatus, "invitation_status"), nullable=False, default=InvitationStatus.PENDING
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    sender: Mapped[UserModel] = relationship("UserModel", back_populates="sent_invitations")
