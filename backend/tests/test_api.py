import csv
import io
from datetime import date

from sqlalchemy import inspect, text

from finchat.db import build_engine
from finchat.migrations import run_migrations

from conftest import PASSWORD, PHONE, TODAY, text_update


def login(client, phone, password=PASSWORD):
    return client.post("/api/auth/login", json={"phone_number": phone, "password": password})


def test_health_check(client):
    assert client.get("/").json() == {"status": "ok"}


def test_login_accepts_number_without_country_prefix(client, register_user):
    register_user()

    assert login(client, PHONE).status_code == 200
    response = login(client, "(11) 99999-8888")
    assert response.status_code == 200
    assert response.json()["user"]["phone_number"] == PHONE


def test_login_rejects_wrong_password(client, register_user):
    register_user()

    assert login(client, PHONE, "654321").status_code == 401
    assert login(client, PHONE, "12345").status_code == 422


def test_user_without_password_cannot_log_in(client, register_user):
    register_user(password=None)
    assert login(client, PHONE).status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/me").status_code == 401
    assert client.get("/api/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_profile_read_update_delete(client, auth_headers):
    assert client.get("/api/me", headers=auth_headers).json()["full_name"] == "Ana Souza"

    response = client.patch("/api/me", json={"full_name": "Ana S."}, headers=auth_headers)
    assert response.json()["full_name"] == "Ana S."

    assert client.delete("/api/me", headers=auth_headers).status_code == 204
    assert client.get("/api/me", headers=auth_headers).status_code == 401


def test_profile_name_is_trimmed_and_never_blank(client, auth_headers):
    assert client.patch("/api/me", json={"full_name": "   "}, headers=auth_headers).status_code == 422
    assert client.get("/api/me", headers=auth_headers).json()["full_name"] == "Ana Souza"

    response = client.patch("/api/me", json={"full_name": "  Ana  "}, headers=auth_headers)
    assert response.json()["full_name"] == "Ana"


def test_transaction_crud(client, auth_headers):
    payload = {"amount": 42.5, "description": "Dinner", "category": "Lazer", "date": "2024-05-14"}
    created = client.post("/api/me/transactions", json=payload, headers=auth_headers)
    assert created.status_code == 201
    body = created.json()
    assert body["type"] == "expense"
    assert body["status"] == "paid"
    assert len(body["tx_code"]) == 5

    tx_id = body["id"]
    assert client.get(f"/api/me/transactions/{tx_id}", headers=auth_headers).json()["description"] == "Dinner"

    updated = client.put(
        f"/api/me/transactions/{tx_id}", json={"amount": 50, "status": "pending"}, headers=auth_headers
    ).json()
    assert updated["amount"] == 50
    assert updated["status"] == "pending"
    assert updated["category"] == "Lazer"

    listed = client.get("/api/me/transactions", params={"status": "pending"}, headers=auth_headers).json()
    assert [t["id"] for t in listed] == [tx_id]

    assert client.delete(f"/api/me/transactions/{tx_id}", headers=auth_headers).status_code == 204
    assert client.get(f"/api/me/transactions/{tx_id}", headers=auth_headers).status_code == 404


def test_transaction_amount_must_be_positive(client, auth_headers):
    payload = {"amount": 0, "category": "Lazer", "date": "2024-05-14"}
    assert client.post("/api/me/transactions", json=payload, headers=auth_headers).status_code == 422


def test_list_filters(client, auth_headers):
    for amount, type_, day in ((10, "expense", "2024-05-01"), (20, "income", "2024-05-10"), (30, "expense", "2024-04-01")):
        client.post(
            "/api/me/transactions",
            json={"amount": amount, "type": type_, "category": "Outros", "date": day},
            headers=auth_headers,
        )

    listed = client.get(
        "/api/me/transactions",
        params={"type": "expense", "start_date": "2024-05-01", "end_date": "2024-05-31"},
        headers=auth_headers,
    ).json()
    assert [t["amount"] for t in listed] == [10]


def test_clear_transactions(client, auth_headers):
    for day in ("2024-05-01", "2024-05-02"):
        client.post("/api/me/transactions", json={"amount": 1, "category": "Outros", "date": day}, headers=auth_headers)

    assert client.delete("/api/me/transactions", headers=auth_headers).json() == {"deleted": 2}
    assert client.get("/api/me/transactions", headers=auth_headers).json() == []


def test_export_csv_and_json(client, auth_headers):
    client.post(
        "/api/me/transactions",
        json={"amount": 12.5, "category": "Transporte", "description": "Bus", "date": "2024-05-02"},
        headers=auth_headers,
    )

    response = client.get("/api/me/transactions/export/csv", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[1][4] == "12.50"
    assert rows[1][8] == "Transporte"
    assert rows[4][4] == "Transporte"

    report = client.get("/api/me/transactions/export/json", headers=auth_headers).json()
    assert report["totals"]["realized_expense"] == 12.5
    assert report["top_category"] == "Transporte"

    assert client.get("/api/me/transactions/export/pdf", headers=auth_headers).status_code == 422


def test_categories(client, auth_headers):
    created = client.post("/api/me/categories", json={"name": "Pets", "type": "expense"}, headers=auth_headers)
    assert created.status_code == 201
    duplicate = client.post("/api/me/categories", json={"name": "Pets", "type": "expense"}, headers=auth_headers)
    assert duplicate.status_code == 409
    client.post("/api/me/categories", json={"name": "Freelance", "type": "income"}, headers=auth_headers)

    names = [c["name"] for c in client.get("/api/me/categories", params={"type": "income"}, headers=auth_headers).json()]
    assert names == ["Freelance"]

    category_id = created.json()["id"]
    assert client.delete(f"/api/me/categories/{category_id}", headers=auth_headers).status_code == 204
    assert client.delete(f"/api/me/categories/{category_id}", headers=auth_headers).status_code == 404


def test_family_invitation_shares_the_ledger(client, auth_headers, register_user, add_transaction):
    partner = register_user(telegram_id=222, phone="5511888887777", password="654321", name="Bruno")
    add_transaction(partner.id, 80, TODAY, category="Alimentação")
    partner_headers = {"Authorization": f"Bearer {login(client, '5511888887777', '654321').json()['access_token']}"}

    invitation = client.post("/api/me/invitations", json={"receiver_phone": "11 88888-7777"}, headers=auth_headers)
    assert invitation.status_code == 201

    received = client.get("/api/me/invitations", headers=partner_headers).json()["received"]
    assert [i["sender_name"] for i in received] == ["Ana Souza"]

    accepted = client.post(f"/api/me/invitations/{received[0]['id']}/accept", headers=partner_headers)
    assert accepted.status_code == 200
    assert accepted.json()["family_id"]

    family = client.get("/api/me/family", headers=auth_headers).json()
    assert sorted(member["full_name"] for member in family) == ["Ana Souza", "Bruno"]
    ledger = client.get("/api/me/transactions", headers=auth_headers).json()
    assert [t["amount"] for t in ledger] == [80]

    # Family members read each other's rows but only edit their own.
    assert client.delete(f"/api/me/transactions/{ledger[0]['id']}", headers=auth_headers).status_code == 404
    again = client.post(f"/api/me/invitations/{received[0]['id']}/reject", headers=partner_headers)
    assert again.status_code == 409


def test_cannot_invite_yourself(client, auth_headers):
    response = client.post("/api/me/invitations", json={"receiver_phone": "+55 11 99999-8888"}, headers=auth_headers)
    assert response.status_code == 409


def test_dashboard_summary_carries_previous_balance(client, auth_headers, register_user, add_transaction):
    user = register_user()
    add_transaction(user.id, 1000, date(2024, 4, 20), type="income", category="Salário")
    add_transaction(user.id, 200, date(2024, 4, 25))
    add_transaction(user.id, 50, date(2024, 4, 28), status="pending")
    add_transaction(user.id, 500, date(2024, 5, 2), type="income", category="Salário")
    add_transaction(user.id, 100, date(2024, 5, 10), category="Alimentação")
    add_transaction(user.id, 300, date(2024, 5, 20), status="pending", category="Moradia")

    summary = client.get("/api/dashboard/summary", params={"range": "this_month"}, headers=auth_headers).json()

    assert summary["start_date"] == "2024-05-01"
    assert summary["has_data"] is True
    totals = summary["totals"]
    assert totals["previous_balance"] == 800
    assert totals["realized_income"] == 500
    assert totals["pending_expense"] == 300
    assert totals["current_balance"] == 1200
    assert totals["projected_balance"] == 900
    assert [(c["name"], c["share"]) for c in summary["categories"]] == [("Moradia", 75), ("Alimentação", 25)]
    assert [d["date"] for d in summary["daily_flow"]] == ["2024-05-02", "2024-05-10", "2024-05-20"]


def test_dashboard_all_range_and_empty_window(client, auth_headers, register_user, add_transaction):
    user = register_user()
    add_transaction(user.id, 10, date(2023, 1, 1))

    everything = client.get("/api/dashboard/summary", params={"range": "all"}, headers=auth_headers).json()
    assert everything["totals"]["previous_balance"] == 0
    assert everything["totals"]["count"] == 1

    today = client.get("/api/dashboard/summary", params={"range": "today", "chart": "income"}, headers=auth_headers).json()
    assert today["has_data"] is False
    assert today["categories"] == []

    assert client.get("/api/dashboard/summary", params={"range": "decade"}, headers=auth_headers).status_code == 422


def test_dashboard_category_totals(client, auth_headers, register_user, add_transaction):
    user = register_user()
    add_transaction(user.id, 10, date(2024, 5, 1), category="Lazer")
    add_transaction(user.id, 15, date(2024, 5, 2), category="Lazer")
    add_transaction(user.id, 100, date(2024, 5, 3), type="income", category="Lazer")

    totals = client.get("/api/dashboard/categories", params={"range": "this_year"}, headers=auth_headers).json()

    assert totals == [
        {"category": "Lazer", "type": "income", "total": 100.0, "count": 1},
        {"category": "Lazer", "type": "expense", "total": 25.0, "count": 2},
    ]


def test_webhook_acknowledges_and_processes(client, register_user, messenger):
    response = client.post("/api/telegram/webhook", json=text_update("/start"))

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert len(messenger.contact_requests) == 1


def test_webhook_ignores_bodies_it_cannot_read(client, messenger):
    assert client.post("/api/telegram/webhook", content=b"not json").json() == {"ok": True}
    assert client.post("/api/telegram/webhook", json=[1, 2]).json() == {"ok": True}
    assert client.post("/api/telegram/webhook", json={"update_id": 1}).json() == {"ok": True}
    assert messenger.sent == []


def test_webhook_reports_missing_configuration(client):
    from finchat.main import app
    from finchat.routers.webhook import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: None
    response = client.post("/api/telegram/webhook", json=text_update("hi"))

    assert response.status_code == 200
    assert response.json() == {"ok": False, "detail": "Config Error"}


def test_webhook_checks_secret_token(client, settings, messenger):
    settings.telegram_webhook_secret = "s3cret"

    rejected = client.post("/api/telegram/webhook", json=text_update("/start"))
    assert rejected.status_code == 403

    accepted = client.post(
        "/api/telegram/webhook",
        json=text_update("/start"),
        headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
    )
    assert accepted.json() == {"ok": True}
    assert len(messenger.contact_requests) == 1


def test_webhook_status(client):
    status = client.get("/api/telegram/webhook").json()
    assert status["telegram_configured"] is True
    assert status["oracle_configured"] is True
    assert len(status["models"]) == 3


def test_migrations_add_missing_columns():
    engine = build_engine("sqlite://")
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, telegram_id BIGINT)"))
        connection.execute(text("CREATE TABLE transactions (id INTEGER PRIMARY KEY, amount FLOAT)"))
        connection.execute(text("INSERT INTO transactions (id, amount) VALUES (1, 9.5)"))

    applied = run_migrations(engine)

    assert applied == [
        "users.family_id",
        "transactions.subcategory",
        "transactions.recurrence",
        "transactions.is_fixed",
        "transactions.due_date",
    ]
    columns = {column["name"] for column in inspect(engine).get_columns("transactions")}
    assert {"recurrence", "is_fixed", "due_date"} <= columns
    with engine.connect() as connection:
        assert connection.execute(text("SELECT recurrence FROM transactions")).scalar() == "none"
    assert run_migrations(engine) == []
