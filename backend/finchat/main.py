import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .db import Base, engine
from .migrations import run_migrations
from .routers import auth, categories, dashboard, invitations, transactions, users, webhook

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="finchat API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(transactions.router, prefix=settings.api_prefix)
app.include_router(categories.router, prefix=settings.api_prefix)
app.include_router(invitations.router, prefix=settings.api_prefix)
app.include_router(dashboard.router, prefix=settings.api_prefix)
app.include_router(webhook.router, prefix=settings.api_prefix)


@app.on_event("startup")
def on_startup() -> None:
    """Ensure database tables exist."""
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)
    if not settings.intake_configured:
        logger.warning("Telegram intake is disabled: set TELEGRAM_BOT_TOKEN and OPENROUTER_API_KEY.")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await webhook.close_pipeline()


@app.get("/")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
