import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["paid", "pending"]
Recurrence = Literal["none", "monthly", "weekly", "yearly"]
RangePreset = Literal["today", "7_days", "this_month", "this_year", "all"]

PASSWORD_PATTERN = r"^[0-9]{6}$"


class UserOut(BaseModel):
    id: int
    telegram_id: int
    full_name: str
    phone_number: Optional[str] = None
    family_id: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)

    model_config = ConfigDict(str_strip_whitespace=True)


class LoginRequest(BaseModel):
    phone_number: str = Field(min_length=8, max_length=32)
    password: str = Field(pattern=PASSWORD_PATTERN)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: UserOut


class TransactionBase(BaseModel):
    amount: float = Field(gt=0)
    description: str = Field(default="", max_length=255)
    category: str = Field(min_length=1, max_length=120)
    subcategory: Optional[str] = Field(default=None, max_length=120)
    type: TransactionType = "expense"
    status: TransactionStatus = "paid"
    recurrence: Recurrence = "none"
    is_fixed: bool = False
    date: dt.date
    due_date: Optional[dt.date] = None


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=120)
    subcategory: Optional[str] = Field(default=None, max_length=120)
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    recurrence: Optional[Recurrence] = None
    is_fixed: Optional[bool] = None
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None


class TransactionOut(TransactionBase):
    id: int
    user_id: int
    tx_code: str

    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    type: TransactionType


class CategoryOut(BaseModel):
    id: int
    name: str
    type: TransactionType


class InvitationCreate(BaseModel):
    receiver_phone: str = Field(min_length=8, max_length=32)


class InvitationOut(BaseModel):
    id: int
    sender_id: int
    sender_name: Optional[str] = None
    receiver_phone: str
    status: Literal["pending", "accepted", "rejected"]
    created_at: Optional[dt.datetime] = None


class InvitationsOverview(BaseModel):
    received: list[InvitationOut]
    sent: list[InvitationOut]


class PeriodTotalsOut(BaseModel):
    label: str
    count: int
    income: float
    expense: float
    realized_income: float
    pending_income: float
    realized_expense: float
    pending_expense: float
    previous_balance: float
    current_balance: float
    projected_balance: float


class CategoryShareOut(BaseModel):
    name: str
    amount: float
    share: float


class DailyFlowOut(BaseModel):
    date: dt.date
    income: float
    expense: float


class DashboardSummary(BaseModel):
    range: RangePreset
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    has_data: bool
    totals: PeriodTotalsOut
    categories: list[CategoryShareOut]
    daily_flow: list[DailyFlowOut]


class CategoryTotalOut(BaseModel):
    category: str
    type: TransactionType
    total: float
    count: int
