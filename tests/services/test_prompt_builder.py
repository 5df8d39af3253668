from datetime import datetime, timezone
from decimal import Decimal

from core.intent import Entitlement, TransactionKind
from models.records import TransactionRecord
from services.financial_summary import summarize
from services.prompt_builder import PERSONA, build_instruction


def test_free_instruction_only_has_add_patterns():
    text = build_instruction(Entitlement.FREE, "USD")

    assert text.startswith(PERSONA)
    assert "PATTERN AddIncome" in text
    assert "PATTERN AddExpense" in text
    assert "PATTERN SetTarget" not in text
    assert "Ranked Recommendations" not in text
    assert "FINANCIAL SNAPSHOT" not in text


def test_premium_instruction_has_every_pattern_and_snapshot():
    summary = summarize([], currency="EUR")
    text = build_instruction(Entitlement.PREMIUM, "EUR", summary)

    for name in ("AddIncome", "AddExpense", "SetTarget", "AnalyzeBudget", "ExplainIdentity", "ExplainSpending"):
        assert f"PATTERN {name}" in text
    assert "target €<amount>" in text
    assert "FINANCIAL SNAPSHOT:" in text


def test_premium_without_snapshot_says_so():
    text = build_instruction(Entitlement.PREMIUM, "USD", None)
    assert "do not quote figures" in text


def test_saved_records_are_announced():
    record = TransactionRecord(
        kind=TransactionKind.EXPENSE,
        amount=Decimal("21"),
        category="Personal Care",
        description="Haircut",
        timestamp=datetime(2026, 5, 10, tzinfo=timezone.utc),
        currency="USD",
    )
    text = build_instruction(Entitlement.FREE, "USD", saved=[record])

    assert "ALREADY SAVED" in text
    assert "✅ Saved expense: Haircut, $21.00 (Personal Care)." in text
