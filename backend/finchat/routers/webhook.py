import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..config import Settings, get_settings
from ..db import SessionLocal
from ..intake.messenger import TelegramMessenger
from ..intake.oracle import build_oracle
from ..intake.pipeline import IntakePipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])

_pipeline: IntakePipeline | None = None


def get_pipeline(settings: Settings = Depends(get_settings)) -> IntakePipeline | None:
    """Shared pipeline, or None while the bot token or the oracle key is missing."""
    global _pipeline
    if not settings.intake_configured:
        return None
    if _pipeline is None:
        _pipeline = IntakePipeline(
            settings,
            SessionLocal,
            build_oracle(settings),
            TelegramMessenger.from_token(settings.telegram_bot_token),
        )
    return _pipeline


async def close_pipeline() -> None:
    global _pipeline
    if _pipeline is not None:
        await _pipeline.messenger.close()
        _pipeline = None


@router.post("/webhook")
async def receive_update(
    request: Request,
    secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
    settings: Settings = Depends(get_settings),
    pipeline: IntakePipeline | None = Depends(get_pipeline),
) -> dict[str, Any]:
    if settings.telegram_webhook_secret and not secrets.compare_digest(
        secret_token or "", settings.telegram_webhook_secret
    ):
        logger.warning("Rejected webhook call with a wrong secret token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret token.")

    if pipeline is None:
        logger.error("Webhook called but TELEGRAM_BOT_TOKEN or OPENROUTER_API_KEY is not configured")
        return {"ok": False, "detail": "Config Error"}

    try:
        payload = await request.json()
    except ValueError:
        logger.info("Ignoring webhook call with a non JSON body")
        return {"ok": True}

    if isinstance(payload, dict):
        await pipeline.handle_update(payload)
    return {"ok": True}


@router.get("/webhook")
def webhook_status(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return {
        "ok": True,
        "telegram_configured": bool(settings.telegram_bot_token),
        "oracle_configured": bool(settings.openrouter_api_key),
        "secret_token_required": bool(settings.telegram_webhook_secret),
        "models": settings.oracle_models,
    }
