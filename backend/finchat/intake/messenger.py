from __future__ import annotations

import logging

from telegram import Bot, KeyboardButton, ReplyKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

logger = logging.getLogger(__name__)

CONTACT_BUTTON_TEXT = "📱 Share my phone number"


def contact_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[KeyboardButton(CONTACT_BUTTON_TEXT, request_contact=True)]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )


class TelegramMessenger:
    """Outbound Bot API calls made while handling a webhook update.

    Failures are logged and swallowed: a reply that cannot be delivered must
    not turn the webhook acknowledgement into an error.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot
        self._ready = False

    @classmethod
    def from_token(cls, token: str) -> "TelegramMessenger":
        return cls(Bot(token=token))

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.bot.initialize()
            self._ready = True

    async def send_message(self, chat_id: int, text: str) -> None:
        try:
            await self._ensure_ready()
            try:
                await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.MARKDOWN)
            except BadRequest as exc:
                # Usually unbalanced markup coming back from the model.
                logger.warning("Markdown rejected for chat %s (%s), resending as plain text", chat_id, exc)
                await self.bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as exc:
            logger.error("Failed to send message to chat %s: %s", chat_id, exc)

    async def request_contact(self, chat_id: int, text: str) -> None:
        try:
            await self._ensure_ready()
            await self.bot.send_message(chat_id=chat_id, text=text, reply_markup=contact_keyboard())
        except TelegramError as exc:
            logger.error("Failed to request contact from chat %s: %s", chat_id, exc)

    async def file_url(self, file_id: str) -> str | None:
        try:
            await self._ensure_ready()
            telegram_file = await self.bot.get_file(file_id)
        except TelegramError as exc:
            logger.error("Failed to resolve file %s: %s", file_id, exc)
            return None
        return telegram_file.file_path

    async def close(self) -> None:
        if self._ready:
            await self.bot.shutdown()
            self._ready = False
