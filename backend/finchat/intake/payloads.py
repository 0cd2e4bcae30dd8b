"""The subset of the Telegram ``Update`` object the webhook reads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _TelegramObject(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TelegramUser(_TelegramObject):
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()


class TelegramChat(_TelegramObject):
    id: int


class TelegramContact(_TelegramObject):
    phone_number: str
    first_name: str = ""
    last_name: Optional[str] = None
    user_id: Optional[int] = None


class TelegramPhoto(_TelegramObject):
    file_id: str
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TelegramMessage(_TelegramObject):
    message_id: Optional[int] = None
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None
    caption: Optional[str] = None
    contact: Optional[TelegramContact] = None
    photo: list[TelegramPhoto] = Field(default_factory=list)

    @property
    def body(self) -> str:
        return (self.text or self.caption or "").strip()

    @property
    def largest_photo(self) -> TelegramPhoto | None:
        # Telegram lists sizes smallest first.
        return self.photo[-1] if self.photo else None


class TelegramUpdate(_TelegramObject):
    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None

    @property
    def effective_message(self) -> TelegramMessage | None:
        return self.message or self.edited_message
