"""Point Telegram at the webhook: ``python -m finchat.bot [--drop-pending] [--delete]``."""

from __future__ import annotations

import argparse
import asyncio
import logging

from telegram import Bot
from telegram.error import TelegramError

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def webhook_url(settings: Settings) -> str:
    if not settings.public_base_url:
        raise SystemExit("Please set PUBLIC_BASE_URL in the environment to register the webhook.")
    return f"{settings.public_base_url.rstrip('/')}{settings.api_prefix}/telegram/webhook"


async def register_webhook(settings: Settings, drop_pending: bool = False) -> bool:
    async with Bot(token=settings.telegram_bot_token) as bot:
        url = webhook_url(settings)
        registered = await bot.set_webhook(
            url=url,
            secret_token=settings.telegram_webhook_secret,
            allowed_updates=["message", "edited_message"],
            drop_pending_updates=drop_pending,
        )
        logger.info("Webhook set to %s: %s", url, registered)
        return registered


async def remove_webhook(settings: Settings, drop_pending: bool = False) -> bool:
    async with Bot(token=settings.telegram_bot_token) as bot:
        removed = await bot.delete_webhook(drop_pending_updates=drop_pending)
        logger.info("Webhook removed: %s", removed)
        return removed


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Manage the Telegram webhook registration.")
    parser.add_argument("--delete", action="store_true", help="remove the webhook instead of setting it")
    parser.add_argument("--drop-pending", action="store_true", help="discard updates Telegram is holding")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if not settings.telegram_bot_token:
        raise SystemExit("Please set TELEGRAM_BOT_TOKEN in the environment to manage the webhook.")

    action = remove_webhook if args.delete else register_webhook
    try:
        asyncio.run(action(settings, drop_pending=args.drop_pending))
    except TelegramError as exc:
        logger.error("Telegram refused the request: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
