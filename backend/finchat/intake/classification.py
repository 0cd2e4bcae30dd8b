"""Structured actions the oracle may return for one inbound message.

The raw JSON is validated into a closed union keyed on ``action``. Anything
that does not fit raises :class:`ValueError` (``pydantic.ValidationError``
included) so the caller can treat the response as unusable.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationInfo, field_validator, model_validator

from ..dates import normalize_recurrence, resolve_relative_date

APOLOGY_MESSAGE = "Sorry, I'm having technical trouble right now. Please try again in a few minutes. 🙏"
DEFAULT_GREETING = "Hi! How can I help with your finances? 💰"

_TYPE_ALIASES = {
    "despesa": "expense",
    "gasto": "expense",
    "saida": "expense",
    "saída": "expense",
    "receita": "income",
    "ganho": "income",
    "entrada": "income",
}
_FILTER_ALIASES = {
    **_TYPE_ALIASES,
    "expenses": "expense",
    "incomes": "income",
    "both": "all",
    "todos": "all",
    "todas": "all",
    "tudo": "all",
    "ambos": "all",
}
_STATUS_ALIASES = {
    "pago": "paid",
    "recebido": "paid",
    "done": "paid",
    "pendente": "pending",
    "a pagar": "pending",
    "a receber": "pending",
}
_GROUPED_THOUSANDS = re.compile(r"^-?[1-9]\d{0,2}[.,]\d{3}$")


def _today(info: ValidationInfo) -> dt.date:
    context = info.context or {}
    return context.get("today") or dt.date.today()


def _coerce_date(value: Any, info: ValidationInfo) -> dt.date | None:
    if value in (None, ""):
        return None
    if isinstance(value, dt.date):
        return value
    resolved = resolve_relative_date(str(value), _today(info))
    if resolved is None:
        raise ValueError(f"Unrecognised date: {value!r}")
    return resolved


def _coerce_amount(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    cleaned = re.sub(r"[^\d,.-]", "", value)
    if "," in cleaned and "." in cleaned:
        # Whichever separator comes last is the decimal one.
        thousands = "." if cleaned.rfind(",") > cleaned.rfind(".") else ","
        cleaned = cleaned.replace(thousands, "")
    elif cleaned.count(".") > 1 or cleaned.count(",") > 1:
        cleaned = cleaned.replace(".", "").replace(",", "")
    elif _GROUPED_THOUSANDS.match(cleaned):
        # A lone separator before exactly three digits groups thousands.
        cleaned = cleaned.replace(".", "").replace(",", "")
    return cleaned.replace(",", ".")


class TransactionAction(BaseModel):
    action: Literal["transaction"]
    amount: float = Field(gt=0)
    description: str = ""
    category: str | None = None
    subcategory: str | None = None
    type: Literal["expense", "income"] = "expense"
    status: Literal["paid", "pending"] | None = None
    recurrence: Literal["none", "monthly", "weekly", "yearly"] = "none"
    is_fixed: bool = False
    date: dt.date | None = None
    due_date: dt.date | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, value: Any) -> Any:
        return _coerce_amount(value)

    @field_validator("description", mode="before")
    @classmethod
    def parse_description(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("category", "subcategory", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, value: Any) -> Any:
        if value in (None, ""):
            return "expense"
        lowered = str(value).strip().lower()
        return _TYPE_ALIASES.get(lowered, lowered)

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        lowered = str(value).strip().lower()
        return _STATUS_ALIASES.get(lowered, lowered)

    @field_validator("recurrence", mode="before")
    @classmethod
    def parse_recurrence(cls, value: Any) -> str:
        return normalize_recurrence(value)

    @field_validator("is_fixed", mode="before")
    @classmethod
    def parse_is_fixed(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("date", "due_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any, info: ValidationInfo) -> dt.date | None:
        return _coerce_date(value, info)


class QueryPeriod(BaseModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    label: str = "Period"

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any, info: ValidationInfo) -> dt.date | None:
        return _coerce_date(value, info)

    @field_validator("label", mode="before")
    @classmethod
    def default_label(cls, value: Any) -> str:
        return str(value).strip() if value else "Period"


class QueryAction(BaseModel):
    action: Literal["query"]
    query_type: Literal["sum", "list", "compare", "analysis"] = "sum"
    periods: list[QueryPeriod] = Field(min_length=1)
    filter_type: Literal["expense", "income", "all"] = "all"
    query_context: str | None = None

    @model_validator(mode="before")
    @classmethod
    def single_period_shorthand(cls, data: Any) -> Any:
        # Older prompt revisions answered with top level start/end dates.
        if isinstance(data, dict) and not data.get("periods"):
            data = dict(data)
            data["periods"] = [
                {"start_date": data.get("start_date"), "end_date": data.get("end_date"), "label": "Period"}
            ]
        return data

    @field_validator("query_type", mode="before")
    @classmethod
    def parse_query_type(cls, value: Any) -> Any:
        return str(value).strip().lower() if value else "sum"

    @field_validator("filter_type", mode="before")
    @classmethod
    def parse_filter_type(cls, value: Any) -> Any:
        if not value:
            return "all"
        lowered = str(value).strip().lower()
        if lowered in _FILTER_ALIASES:
            return _FILTER_ALIASES[lowered]
        # Plurals such as "despesas" or "receitas".
        return _FILTER_ALIASES.get(lowered.rstrip("s"), lowered)

    @model_validator(mode="after")
    def unique_labels(self) -> "QueryAction":
        # Rows are grouped by label later on, so two periods may not share one.
        seen: dict[str, int] = {}
        for period in self.periods:
            count = seen.get(period.label, 0)
            seen[period.label] = count + 1
            if count:
                period.label = f"{period.label} ({count + 1})"
        return self


class DeleteAction(BaseModel):
    action: Literal["delete"]
    tx_code: str = Field(min_length=1, max_length=16)

    @field_validator("tx_code", mode="before")
    @classmethod
    def normalise_code(cls, value: Any) -> str:
        return "" if value is None else str(value).strip().upper()


class ChatAction(BaseModel):
    action: Literal["chat"]
    message: str = ""

    @field_validator("message", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)


Classification = Annotated[
    Union[TransactionAction, QueryAction, DeleteAction, ChatAction],
    Field(discriminator="action"),
]

_adapter: TypeAdapter[Classification] = TypeAdapter(Classification)


def parse_classification(raw: Any, today: dt.date | None = None) -> Classification:
    """Validate the oracle's JSON into one of the action variants."""
    if isinstance(raw, dict) and isinstance(raw.get("action"), str):
        raw = {**raw, "action": raw["action"].strip().lower()}
    return _adapter.validate_python(raw, context={"today": today or dt.date.today()})


def fallback_classification() -> ChatAction:
    return ChatAction(action="chat", message=APOLOGY_MESSAGE)
