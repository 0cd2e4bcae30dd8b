"""Webhook intake: registration, password setup and the classified dispatch.

Every reply goes through the messenger and every failure ends in a log line
or a canned reply; :meth:`IntakePipeline.handle_update` never raises.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .. import crud
from ..config import Settings
from ..dates import default_status
from ..domain.aggregation import Period, query_digest
from ..domain.entities import Transaction, domain_transaction_from_model
from ..models import UserModel
from ..schemas import TransactionCreate
from .classification import DEFAULT_GREETING, ChatAction, DeleteAction, QueryAction, TransactionAction
from .oracle import ClassificationOracle, build_user_content
from .payloads import TelegramMessage, TelegramUpdate, TelegramUser
from .prompts import CATEGORIES, build_analyst_prompt, build_system_prompt

logger = logging.getLogger(__name__)

PASSWORD_RE = re.compile(r"[0-9]{6}")

WELCOME_MESSAGE = (
    "👋 Welcome to finchat!\n\n"
    "To get started, share your phone number using the button below."
)
CONTACT_MISMATCH_MESSAGE = "⚠️ Please share *your own* contact using the button below."
REGISTRATION_FAILED_MESSAGE = "❌ Sorry, I could not register you right now. Please try again later."
UNREGISTERED_MESSAGE = "👋 Type /start to register."
PASSWORD_PROMPT = (
    "🔐 Almost there! Create a 6-digit password to access the dashboard.\n\n"
    "Send only the 6 digits, for example: `123456`"
)
PASSWORD_INVALID_MESSAGE = "⚠️ The password must be exactly 6 digits (numbers only).\n\n" + PASSWORD_PROMPT
PASSWORD_SAVED_MESSAGE = (
    "✅ Password saved! Log in to the dashboard with your phone number and this password.\n\n"
    "Now just tell me about your expenses and income, for example: _spent 50 at the market_"
)
ALREADY_REGISTERED_MESSAGE = "✅ You're already registered. Just tell me about your expenses and income!"
UNSUPPORTED_MESSAGE = "🤔 I can read text messages and receipt photos."
PHOTO_FAILED_MESSAGE = "❌ I couldn't download that photo. Please try again."
SAVE_FAILED_MESSAGE = "❌ Failed to save the transaction. Please try again."
DELETE_FAILED_MESSAGE = "❌ Failed to delete the transaction. Please try again."
QUERY_FAILED_MESSAGE = "❌ I couldn't read your transactions right now. Please try again."
CHECKING_MESSAGE = "🔍 Checking your data..."
NO_TRANSACTIONS_MESSAGE = "📭 No transactions found for the requested period."

RECURRENCE_LABELS = {"none": "None", "monthly": "Monthly", "weekly": "Weekly", "yearly": "Yearly"}


def format_amount(value: float, symbol: str) -> str:
    """``1234.5`` becomes ``R$ 1.234,50``."""
    grouped = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{symbol} {grouped}"


def format_receipt(txn: Transaction, symbol: str) -> str:
    due = txn.due_date.strftime("%d/%m/%Y") if txn.due_date else "-"
    lines = [
        "✅ *Transaction saved!*",
        "",
        f"🔖 Code: `{txn.tx_code}`",
        f"📝 Description: {txn.description or '-'}",
        f"💰 Amount: {format_amount(txn.amount, symbol)}",
        f"📂 Category: {txn.category}",
        f"🏷️ Subcategory: {txn.subcategory or '-'}",
        f"📊 Type: {'Income' if txn.type == 'income' else 'Expense'}",
        f"📌 Status: {'Paid' if txn.is_paid else 'Pending'}",
        f"🔁 Recurrence: {RECURRENCE_LABELS.get(txn.recurrence, txn.recurrence)}",
        f"📍 Fixed: {'Yes' if txn.is_fixed else 'No'}",
        f"📅 Date: {txn.date.strftime('%d/%m/%Y')}",
        f"⏰ Due date: {due}",
        "",
        f"To delete it, send: `Delete transaction {txn.tx_code}`",
    ]
    return "\n".join(lines)


def normalize_phone(raw: str) -> str:
    return re.sub(r"\D", "", raw)


class IntakePipeline:
    def __init__(
        self,
        settings: Settings,
        session_factory: sessionmaker[Session],
        oracle: ClassificationOracle,
        messenger: Any,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.oracle = oracle
        self.messenger = messenger
        self.clock = clock

    async def _db(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a crud call on a fresh session in a worker thread."""

        def call() -> Any:
            with self.session_factory() as db:
                return func(db, *args, **kwargs)

        return await asyncio.to_thread(call)

    async def _reply(self, chat_id: int, text: str) -> None:
        await self.messenger.send_message(chat_id, text)

    async def handle_update(self, payload: dict[str, Any]) -> None:
        try:
            update = TelegramUpdate.model_validate(payload)
        except ValidationError as exc:
            logger.info("Ignoring malformed update: %s", exc.errors()[:1])
            return

        message = update.effective_message
        if message is None or message.from_user is None:
            logger.debug("Update %s carries no message, ignoring", update.update_id)
            return

        try:
            await self._handle_message(message, message.from_user)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error while processing update %s", update.update_id)

    async def _handle_message(self, message: TelegramMessage, sender: TelegramUser) -> None:
        chat_id = message.chat.id
        user: UserModel | None = await self._db(crud.get_user_by_telegram_id, sender.id)

        if message.text and message.text.strip().split(" ")[0].startswith("/start"):
            await self._start(chat_id, sender, user)
            return

        if message.contact is not None:
            await self._register_contact(message, sender, user)
            return

        if user is None:
            await self._reply(chat_id, UNREGISTERED_MESSAGE)
            return

        if not user.password:
            await self._set_password(chat_id, user, message.body)
            return

        await self._dispatch(message, user)

    async def _start(self, chat_id: int, sender: TelegramUser, user: UserModel | None) -> None:
        if user is None:
            await self.messenger.request_contact(chat_id, WELCOME_MESSAGE)
            return
        greeting = f"👋 Hi {sender.first_name or user.full_name}! {DEFAULT_GREETING}"
        if not user.password:
            greeting = f"{greeting}\n\n{PASSWORD_PROMPT}"
        await self._reply(chat_id, greeting)

    async def _register_contact(self, message: TelegramMessage, sender: TelegramUser, user: UserModel | None) -> None:
        chat_id = message.chat.id
        contact = message.contact
        if contact.user_id != sender.id:
            logger.warning("Contact from %s belongs to %s, not registering", sender.id, contact.user_id)
            await self.messenger.request_contact(chat_id, CONTACT_MISMATCH_MESSAGE)
            return

        full_name = sender.full_name or contact.first_name or str(sender.id)
        try:
            registered = await self._db(
                crud.upsert_user_from_contact, sender.id, normalize_phone(contact.phone_number), full_name
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to register Telegram user %s: %s", sender.id, exc)
            await self._reply(chat_id, REGISTRATION_FAILED_MESSAGE)
            return

        logger.info("Registered Telegram user %s as user %s", sender.id, registered.id)
        if registered.password:
            await self._reply(chat_id, ALREADY_REGISTERED_MESSAGE)
        else:
            await self._reply(chat_id, f"✅ Thanks, {full_name}!\n\n{PASSWORD_PROMPT}")

    async def _set_password(self, chat_id: int, user: UserModel, text: str) -> None:
        candidate = text.strip()
        if not PASSWORD_RE.fullmatch(candidate):
            await self._reply(chat_id, PASSWORD_INVALID_MESSAGE)
            return
        try:
            stored = await self._db(crud.set_user_password, user.id, candidate)
        except SQLAlchemyError as exc:
            logger.error("Failed to store password for user %s: %s", user.id, exc)
            await self._reply(chat_id, REGISTRATION_FAILED_MESSAGE)
            return
        await self._reply(chat_id, PASSWORD_SAVED_MESSAGE if stored else ALREADY_REGISTERED_MESSAGE)

    async def _dispatch(self, message: TelegramMessage, user: UserModel) -> None:
        chat_id = message.chat.id
        text = message.body
        image_url = None
        photo = message.largest_photo
        if photo is not None:
            image_url = await self.messenger.file_url(photo.file_id)
            if image_url is None and not text:
                await self._reply(chat_id, PHOTO_FAILED_MESSAGE)
                return
        if not text and image_url is None:
            await self._reply(chat_id, UNSUPPORTED_MESSAGE)
            return

        today = self.clock()
        categories = await self._category_names(user)
        prompt = build_system_prompt(today, categories)
        content = build_user_content(text, image_url)
        action = await asyncio.to_thread(self.oracle.classify, content, prompt, today)
        logger.info("User %s message classified as %s", user.id, action.action)

        if isinstance(action, TransactionAction):
            await self._record_transaction(chat_id, user, action, today)
        elif isinstance(action, DeleteAction):
            await self._delete_transaction(chat_id, user, action)
        elif isinstance(action, QueryAction):
            await self._answer_query(chat_id, user, action, text)
        elif isinstance(action, ChatAction):
            await self._reply(chat_id, action.message or DEFAULT_GREETING)

    async def _category_names(self, user: UserModel) -> list[str]:
        names = list(CATEGORIES)
        try:
            custom = await self._db(crud.list_categories, user.id)
        except SQLAlchemyError as exc:
            logger.warning("Could not load categories for user %s: %s", user.id, exc)
            return names
        names.extend(category.name for category in custom if category.name not in names)
        return names

    async def _record_transaction(self, chat_id: int, user: UserModel, action: TransactionAction, today: date) -> None:
        tx_date = action.date or today
        try:
            data = TransactionCreate(
                amount=action.amount,
                description=action.description[:255],
                category=(action.category or self.settings.default_category)[:120],
                subcategory=action.subcategory[:120] if action.subcategory else None,
                type=action.type,
                status=action.status or default_status(tx_date, today),
                recurrence=action.recurrence,
                is_fixed=action.is_fixed,
                date=tx_date,
                due_date=action.due_date,
            )
        except ValidationError as exc:
            logger.error("Classified transaction for user %s is invalid: %s", user.id, exc)
            await self._reply(chat_id, SAVE_FAILED_MESSAGE)
            return

        def save(db: Session) -> Transaction:
            code = crud.reserve_tx_code(db, user.id, self.settings.tx_code_attempts)
            return domain_transaction_from_model(crud.create_transaction(db, user.id, data, code))

        try:
            saved = await self._db(save)
        except SQLAlchemyError as exc:
            logger.error("Failed to save transaction for user %s: %s", user.id, exc)
            await self._reply(chat_id, SAVE_FAILED_MESSAGE)
            return

        logger.info("Saved transaction %s for user %s", saved.tx_code, user.id)
        await self._reply(chat_id, format_receipt(saved, self.settings.currency_symbol))

    async def _delete_transaction(self, chat_id: int, user: UserModel, action: DeleteAction) -> None:
        try:
            removed = await self._db(crud.delete_transaction_by_code, user.id, action.tx_code)
        except SQLAlchemyError as exc:
            logger.error("Failed to delete %s for user %s: %s", action.tx_code, user.id, exc)
            await self._reply(chat_id, DELETE_FAILED_MESSAGE)
            return

        if removed is None:
            await self._reply(chat_id, f"❌ Transaction `{action.tx_code}` not found.")
            return
        logger.info("Deleted transaction %s for user %s", action.tx_code, user.id)
        await self._reply(
            chat_id,
            f"🗑️ Transaction `{action.tx_code}` deleted.\n\n"
            f"📝 {removed.description or removed.category}\n"
            f"💰 {format_amount(removed.amount, self.settings.currency_symbol)}",
        )

    async def _answer_query(self, chat_id: int, user: UserModel, action: QueryAction, question: str) -> None:
        await self._reply(chat_id, CHECKING_MESSAGE)
        type_filter = None if action.filter_type == "all" else action.filter_type

        periods: list[Period] = []
        tagged: list[Transaction] = []
        try:
            for requested in action.periods:
                rows = await self._db(
                    crud.list_domain_transactions,
                    [user.id],
                    type_=type_filter,
                    start_date=requested.start_date,
                    end_date=requested.end_date,
                )
                tagged.extend(row.tagged(requested.label) for row in rows)
                periods.append(Period(requested.start_date, requested.end_date, requested.label))
        except SQLAlchemyError as exc:
            logger.error("Failed to read transactions for user %s: %s", user.id, exc)
            await self._reply(chat_id, QUERY_FAILED_MESSAGE)
            return

        if not tagged:
            await self._reply(chat_id, NO_TRANSACTIONS_MESSAGE)
            return

        digest = query_digest(
            tagged,
            periods,
            action.query_type,
            action.filter_type,
            sample_size=self.settings.query_sample_size,
        )
        question = question or action.query_context or ""
        prompt = build_analyst_prompt(question, digest, self.settings.currency_symbol)
        answer = await asyncio.to_thread(self.oracle.analyse, question, prompt)
        await self._reply(chat_id, answer)
