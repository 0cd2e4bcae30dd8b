from datetime import date

import pytest

from finchat.intake.classification import (
    APOLOGY_MESSAGE,
    ChatAction,
    DeleteAction,
    QueryAction,
    TransactionAction,
    fallback_classification,
    parse_classification,
)

TODAY = date(2024, 5, 15)


def test_transaction_with_defaults():
    action = parse_classification({"action": "transaction", "amount": 50, "description": "market"}, TODAY)

    assert isinstance(action, TransactionAction)
    assert action.amount == 50
    assert action.type == "expense"
    assert action.status is None
    assert action.category is None
    assert action.date is None
    assert action.recurrence == "none"
    assert action.is_fixed is False


def test_transaction_normalises_loose_fields():
    action = parse_classification(
        {
            "action": "Transaction",
            "amount": "R$ 1.500,90",
            "type": "receita",
            "status": "pendente",
            "category": "  ",
            "recurrence": "every month",
            "date": "yesterday",
            "due_date": "10/06",
            "is_fixed": None,
        },
        TODAY,
    )

    assert action.amount == pytest.approx(1500.90)
    assert action.type == "income"
    assert action.status == "pending"
    assert action.category is None
    assert action.recurrence == "monthly"
    assert action.date == date(2024, 5, 14)
    assert action.due_date == date(2024, 6, 10)
    assert action.is_fixed is False


def test_amount_with_dot_as_decimal_separator():
    action = parse_classification({"action": "transaction", "amount": "1,500.25"}, TODAY)
    assert action.amount == pytest.approx(1500.25)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.234", 1234),
        ("1,234", 1234),
        ("R$ 1.234.567", 1234567),
        ("12,50", 12.5),
        ("12.5", 12.5),
        ("0.500", 0.5),
    ],
)
def test_amount_separator_reading(raw, expected):
    action = parse_classification({"action": "transaction", "amount": raw}, TODAY)
    assert action.amount == pytest.approx(expected)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("expenses", "expense"),
        ("Despesas", "expense"),
        ("gastos", "expense"),
        ("receita", "income"),
        ("incomes", "income"),
        ("both", "all"),
        ("todos", "all"),
    ],
)
def test_query_filter_type_aliases(raw, expected):
    action = parse_classification({"action": "query", "filter_type": raw}, TODAY)
    assert action.filter_type == expected


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "transaction", "amount": 0},
        {"action": "transaction", "amount": -3},
        {"action": "transaction"},
        {"action": "transaction", "amount": 5, "date": "whenever"},
        {"action": "transfer", "amount": 5},
        {"amount": 5},
        {"action": "delete", "tx_code": ""},
        ["not", "an", "object"],
    ],
)
def test_payloads_outside_the_union_are_rejected(payload):
    with pytest.raises(ValueError):
        parse_classification(payload, TODAY)


def test_query_with_periods():
    action = parse_classification(
        {
            "action": "query",
            "query_type": "compare",
            "filter_type": "income",
            "periods": [
                {"start_date": "2024-04-01", "end_date": "2024-04-30", "label": "April"},
                {"start_date": "2024-05-01", "end_date": "2024-05-31", "label": "May"},
            ],
        },
        TODAY,
    )

    assert isinstance(action, QueryAction)
    assert action.query_type == "compare"
    assert action.filter_type == "income"
    assert [p.label for p in action.periods] == ["April", "May"]
    assert action.periods[1].start_date == date(2024, 5, 1)


def test_query_single_period_shorthand_and_defaults():
    action = parse_classification(
        {"action": "query", "start_date": "2024-05-01", "end_date": "today", "filter_type": None},
        TODAY,
    )

    assert action.query_type == "sum"
    assert action.filter_type == "all"
    assert len(action.periods) == 1
    assert action.periods[0].end_date == TODAY
    assert action.periods[0].label == "Period"


def test_query_duplicate_labels_are_made_unique():
    action = parse_classification(
        {
            "action": "query",
            "periods": [
                {"start_date": "2024-05-14", "end_date": "2024-05-14", "label": "Day"},
                {"start_date": "2024-05-15", "end_date": "2024-05-15", "label": "Day"},
            ],
        },
        TODAY,
    )

    assert [p.label for p in action.periods] == ["Day", "Day (2)"]


def test_delete_code_is_uppercased():
    action = parse_classification({"action": "delete", "tx_code": " ab12c "}, TODAY)
    assert isinstance(action, DeleteAction)
    assert action.tx_code == "AB12C"


def test_chat_message_may_be_empty():
    action = parse_classification({"action": "chat", "message": None}, TODAY)
    assert isinstance(action, ChatAction)
    assert action.message == ""


def test_fallback_is_the_apology():
    action = fallback_classification()
    assert action.action == "chat"
    assert action.message == APOLOGY_MESSAGE
