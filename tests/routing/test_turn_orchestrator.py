import asyncio
import re
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from agents.completion_agent import CompletionError
from models.conversation import ChatRequest, Message
from services.entitlement import PAYWALL_INSTRUCTION
from services.replies import FALLBACK_PAYWALL_REPLY, SAVE_FAILED_REPLY
from services.turn_orchestrator import TurnOrchestrator
from tests.fakes import FakeCompletion

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)

RANKED = (
    "## Quick Summary\nYou spent $400.00 this month.\n"
    "## Ranked Recommendations\n"
    "1. **Dining Out — target $59.22** (save $20.00, 25% reduction)\n"
    "   - Current spending: $79.22\n"
    "2. **Shopping — target $80.00** (save $40.00)\n"
    "## Next Step\n"
    "Want me to set these as limits?"
)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _request(*turns: str, entitlement=None) -> ChatRequest:
    roles = ("user", "assistant")
    return ChatRequest(
        messages=[Message(role=roles[i % 2], content=text) for i, text in enumerate(turns)],
        userId="user-1",
        entitlement=entitlement,
    )


def _run(db, completion, request):
    orchestrator = TurnOrchestrator(db, completion, clock=lambda: NOW)
    return asyncio.run(orchestrator.handle_turn(request))


# ---------------------------------------------------------------------
# Free tier: add records
# ---------------------------------------------------------------------

def test_expense_saved_before_the_model_is_called(db):
    completion = FakeCompletion("✅ Got it, I've saved your haircut expense of $21.00.")
    reply = _run(db, completion, _request("add expense 21 for a haircut", entitlement="free"))

    assert not reply.requiresUpgrade
    assert reply.createdRecordType == "transaction"
    assert reply.createdRecordIds == [reply.createdRecordId]
    assert reply.replyText.startswith("✅")

    row = db.txn.rows[0]
    assert row.amount == Decimal("21.00")
    assert row.category == "Personal Care"
    assert row.description == "Haircut"
    assert "ALREADY SAVED" in completion.calls[0]["instruction"]


def test_confirmation_added_when_reply_forgets(db):
    completion = FakeCompletion("Anything else I can help with?")
    reply = _run(db, completion, _request("add expense 21 for a haircut", entitlement="free"))

    assert reply.replyText.endswith("✅ Saved expense: Haircut, $21.00 (Personal Care).")


def test_unverified_write_is_never_acknowledged(db):
    db.txn.drop_after_create = True
    completion = FakeCompletion("✅ Saved!")
    reply = _run(db, completion, _request("add expense 21 for a haircut", entitlement="free"))

    assert reply.replyText == SAVE_FAILED_REPLY
    assert reply.createdRecordId is None
    assert completion.calls == []


def test_mismatched_write_is_removed(db):
    db.txn.tamper = {"amount": Decimal("2.10")}
    reply = _run(db, FakeCompletion(), _request("add expense 21 for a haircut", entitlement="free"))

    assert reply.replyText == SAVE_FAILED_REPLY
    assert db.txn.rows == []
    assert len(db.txn.deleted) == 1


def test_claimed_save_without_record_is_corrected(db):
    completion = FakeCompletion("I've added your expense.")
    reply = _run(db, completion, _request("add an expense", entitlement="free"))

    assert reply.replyText == SAVE_FAILED_REPLY
    assert db.txn.rows == []


def test_completion_failure_removes_this_turns_record(db):
    completion = FakeCompletion(error=CompletionError("upstream down"))

    with pytest.raises(CompletionError):
        _run(db, completion, _request("add expense 21 for a haircut", entitlement="free"))

    assert db.txn.rows == []


# ---------------------------------------------------------------------
# Free tier: paywall
# ---------------------------------------------------------------------

def test_limit_request_is_paywalled(db):
    completion = FakeCompletion("Spending limits are part of Premium. You can keep adding expenses for free.")
    reply = _run(db, completion, _request("set a limit for dining out", entitlement="free"))

    assert reply.requiresUpgrade
    assert reply.createdRecordId is None
    assert db.target.rows == []
    assert not re.search(r"\d", reply.replyText)
    assert len(completion.calls) == 1
    assert completion.calls[0]["instruction"] == PAYWALL_INSTRUCTION


def test_paywall_repeats_on_bare_yes(db):
    reply = _run(
        db,
        None,
        _request("set a limit for dining out", FALLBACK_PAYWALL_REPLY, "yes", entitlement="free"),
    )

    assert reply.requiresUpgrade
    assert reply.replyText == FALLBACK_PAYWALL_REPLY


def test_premium_hint_without_subscription_is_paywalled(db):
    reply = _run(db, None, _request("analyze my budget", entitlement="premium"))
    assert reply.requiresUpgrade


def test_paid_shaped_reply_is_replaced_for_free_user(db):
    completion = FakeCompletion("## Quick Summary\nYou spent $500.00.", "That needs Premium.")
    reply = _run(db, completion, _request("tell me something about my money", entitlement="free"))

    assert reply.requiresUpgrade
    assert reply.replyText == "That needs Premium."
    assert len(completion.calls) == 2


def test_regate_after_saved_expense_keeps_the_confirmation(db):
    completion = FakeCompletion("## Quick Summary\nYou spent $430.00.", "That needs Premium.")
    reply = _run(db, completion, _request("spent 30 on groceries", entitlement="free"))

    assert reply.requiresUpgrade
    assert reply.replyText.startswith("✅ Saved expense: Groceries, $30.00 (Groceries).")
    assert reply.replyText.endswith("That needs Premium.")
    assert len(reply.createdRecordIds) == 1
    assert len(db.txn.rows) == 1


# ---------------------------------------------------------------------
# Premium
# ---------------------------------------------------------------------

def test_do_it_after_ranked_list_saves_limits(premium_db):
    completion = FakeCompletion("Done, both are in place now.")
    reply = _run(premium_db, completion, _request("analyze my budget", RANKED, "do it"))

    assert not reply.requiresUpgrade
    assert reply.createdRecordType == "budget"
    assert len(reply.createdRecordIds) == 2
    assert "✅ Spending limit saved: Dining Out, $59.22 per month." in reply.replyText

    first = premium_db.target.rows[0]
    assert first.category == "Dining Out"
    assert first.targetAmount == Decimal("59.22")
    assert first.targetType == "budget"
    assert "FINANCIAL SNAPSHOT:" in completion.calls[0]["instruction"]


def test_goal_confirmed_by_model_is_saved(premium_db):
    completion = FakeCompletion("I've set a savings goal for New Phone of $1,200.00.")
    reply = _run(premium_db, completion, _request("I want to save 1200 for a new phone by December"))

    assert reply.createdRecordType == "savings"
    row = premium_db.target.rows[0]
    assert row.title == "New Phone"
    assert row.targetDate.date() == date(2026, 12, 31)


def test_premium_limit_request_reaches_the_model(premium_db):
    completion = FakeCompletion("Which category would you like to limit?")
    reply = _run(premium_db, completion, _request("set a spending limit"))

    assert not reply.requiresUpgrade
    assert reply.replyText == "Which category would you like to limit?"
    assert premium_db.target.rows == []


@pytest.mark.parametrize(
    "question, answer",
    [
        ("What did I spend on groceries this month?",
         "This month you recorded an expense of $42.10 for Groceries."),
        ("How much have I spent on groceries",
         "You've spent $320.00 on Groceries so far, all tracked."),
    ],
)
def test_spending_answer_is_not_saved_again(premium_db, question, answer):
    reply = _run(premium_db, FakeCompletion(answer), _request(question))

    assert reply.createdRecordId is None
    assert reply.createdRecordIds == []
    assert reply.replyText != SAVE_FAILED_REPLY
    assert "Groceries" in reply.replyText
    assert premium_db.txn.rows == []


def test_ok_after_breakdown_sets_no_limits(premium_db):
    breakdown = "1. Groceries: $320\n2. Dining Out: $150\n3. Shopping: $90"
    completion = FakeCompletion("Glad that helps!")
    reply = _run(premium_db, completion, _request("where does my money go", breakdown, "ok"))

    assert reply.createdRecordIds == []
    assert premium_db.target.rows == []
    assert reply.replyText == "Glad that helps!"


def test_paywall_repeats_on_bare_category(db):
    reply = _run(
        db,
        None,
        _request("set a limit for dining out", FALLBACK_PAYWALL_REPLY, "groceries", entitlement="free"),
    )

    assert reply.requiresUpgrade
    assert reply.replyText == FALLBACK_PAYWALL_REPLY
    assert db.target.rows == []
    assert db.txn.rows == []
