import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("TELEGRAM_BOT_TOKEN", None)
os.environ.pop("OPENROUTER_API_KEY", None)

import json
from datetime import date
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient

from finchat import crud
from finchat import models  # noqa: F401  registers the tables on Base.metadata
from finchat.config import Settings, get_settings
from finchat.db import Base, build_engine, build_session_factory, get_db
from finchat.intake.oracle import ClassificationOracle, FallbackChain
from finchat.intake.pipeline import IntakePipeline
from finchat.main import app
from finchat.routers.dashboard import get_today
from finchat.routers.webhook import get_pipeline
from finchat.schemas import TransactionCreate

TODAY = date(2024, 5, 15)
TELEGRAM_ID = 111
PHONE = "5511999998888"
PASSWORD = "123456"


class ScriptedModel:
    """Candidate that answers from a script; exceptions in the script are raised."""

    def __init__(self, name: str, *responses: Any) -> None:
        self.name = name
        self.responses = list(responses)
        self.calls: list[tuple[str, Any, bool]] = []

    def complete(self, system_prompt: str, content: Any, structured: bool = True) -> str:
        self.calls.append((system_prompt, content, structured))
        if not self.responses:
            raise ValueError(f"{self.name} has nothing left to say")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class RecordingMessenger:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.contact_requests: list[tuple[int, str]] = []
        self.files: dict[str, str] = {}
        self.closed = False

    async def send_message(self, chat_id: int, text: str) -> None:
        self.sent.append((chat_id, text))

    async def request_contact(self, chat_id: int, text: str) -> None:
        self.contact_requests.append((chat_id, text))

    async def file_url(self, file_id: str) -> str | None:
        return self.files.get(file_id)

    async def close(self) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


def text_update(text: str, telegram_id: int = TELEGRAM_ID, update_id: int = 1) -> dict[str, Any]:
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "chat": {"id": telegram_id, "type": "private"},
            "from": {"id": telegram_id, "is_bot": False, "first_name": "Ana", "last_name": "Souza"},
            "date": 1715774400,
            "text": text,
        },
    }


def contact_update(contact_user_id: int | None, telegram_id: int = TELEGRAM_ID, phone: str = "+55 11 99999-8888"):
    update = text_update("", telegram_id)
    del update["message"]["text"]
    update["message"]["contact"] = {"phone_number": phone, "first_name": "Ana", "user_id": contact_user_id}
    return update


def photo_update(file_id: str, caption: str | None = None, telegram_id: int = TELEGRAM_ID) -> dict[str, Any]:
    update = text_update("", telegram_id)
    del update["message"]["text"]
    update["message"]["photo"] = [
        {"file_id": f"{file_id}-small", "file_unique_id": "s", "width": 90, "height": 90},
        {"file_id": file_id, "file_unique_id": "l", "width": 1280, "height": 1280},
    ]
    if caption:
        update["message"]["caption"] = caption
    return update


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        telegram_bot_token="test-token",
        openrouter_api_key="test-key",
        jwt_secret="test-secret",
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def make_pipeline(settings, session_factory, messenger):
    def factory(*candidates: ScriptedModel) -> IntakePipeline:
        oracle = ClassificationOracle(FallbackChain(candidates))
        return IntakePipeline(settings, session_factory, oracle, messenger, clock=lambda: TODAY)

    return factory


@pytest.fixture
def register_user(session_factory):
    def factory(telegram_id: int = TELEGRAM_ID, phone: str = PHONE, password: str | None = PASSWORD, name="Ana Souza"):
        with session_factory() as db:
            user = crud.upsert_user_from_contact(db, telegram_id, phone, name)
            if password:
                crud.set_user_password(db, user.id, password)
                db.refresh(user)
            return user

    return factory


@pytest.fixture
def add_transaction(session_factory):
    def factory(user_id: int, amount: float, tx_date: date, **fields: Any):
        code = fields.pop("tx_code", None)
        category = fields.pop("category", "Outros")
        data = TransactionCreate(amount=amount, date=tx_date, category=category, **fields)
        with session_factory() as db:
            return crud.create_transaction(db, user_id, data, code or crud.reserve_tx_code(db, user_id))

    return factory


@pytest.fixture
def client(settings, session_factory, make_pipeline) -> Iterator[TestClient]:
    pipeline = make_pipeline()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_today] = lambda: (lambda: TODAY)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client, register_user):
    register_user()
    response = client.post("/api/auth/login", json={"phone_number": PHONE, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
