import pytest

from core.intent import Intent
from models.conversation import Message
from services.intent_classifier import classify_messages
from services.vocabulary import asks_about_spending, is_affirmative, is_unambiguous_add


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _conversation(*turns: str):
    """Alternating user / assistant messages, starting with the user."""
    roles = ("user", "assistant")
    return [Message(role=roles[i % 2], content=text) for i, text in enumerate(turns)]


def _classify(*turns: str):
    return classify_messages(_conversation(*turns))


# ---------------------------------------------------------------------
# Single message
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "text, expected",
    [
        ("hi", Intent.EXPLAIN_IDENTITY),
        ("who are you?", Intent.EXPLAIN_IDENTITY),
        ("add expense 21 for a haircut", Intent.ADD_EXPENSE),
        ("I spent 45 on groceries", Intent.ADD_EXPENSE),
        ("received 2500 salary", Intent.ADD_INCOME),
        ("what did I spend on food?", Intent.EXPLAIN_SPENDING),
        ("How much have I spent on groceries", Intent.EXPLAIN_SPENDING),
        ("how much did I spend on coffee this week", Intent.EXPLAIN_SPENDING),
        ("analyze my budget", Intent.ANALYZE_BUDGET),
        ("set a limit for dining out", Intent.SET_TARGET),
        ("I want to save for a new car", Intent.SET_TARGET),
        ("Ich möchte ein Ausgabenlimit festlegen", Intent.SET_TARGET),
        ("quiero ahorrar para un viaje", Intent.SET_TARGET),
    ],
)
def test_single_message_intent(text, expected):
    assert _classify(text) == expected


def test_unrecognized_turn_has_no_intent():
    assert _classify("the weather is nice") is None


def test_got_paid_is_income_not_expense():
    assert _classify("got paid 1800 today") == Intent.ADD_INCOME


# ---------------------------------------------------------------------
# Follow-ups read against the previous assistant message
# ---------------------------------------------------------------------

def test_amount_after_expense_question_is_add_expense():
    intent = _classify(
        "add an expense",
        "Sure! How much did you spend, and what was it for?",
        "21 haircut",
    )
    assert intent == Intent.ADD_EXPENSE


def test_amount_after_salary_question_is_add_income():
    intent = _classify(
        "I want to log income",
        "Nice! How much was your salary this month?",
        "3200",
    )
    assert intent == Intent.ADD_INCOME


def test_amount_after_goal_question_is_set_target():
    intent = _classify(
        "I want to save for a trip",
        "Great idea! How much would you like to save for your trip?",
        "2000",
    )
    assert intent == Intent.SET_TARGET


def test_yes_after_recommended_limits_is_set_target():
    intent = _classify(
        "analyze my budget",
        "## Ranked Recommendations\n1. **Dining Out — target $59.22**\n\nShall I set these as limits?",
        "yes",
    )
    assert intent == Intent.SET_TARGET


def test_yes_after_paywall_stays_in_paid_flow():
    from services.replies import FALLBACK_PAYWALL_REPLY

    intent = _classify("set a limit for dining out", FALLBACK_PAYWALL_REPLY, "yes")
    assert intent == Intent.SET_TARGET


# ---------------------------------------------------------------------
# Vocabulary helpers
# ---------------------------------------------------------------------

def test_affirmative_answers():
    assert is_affirmative("yes")
    assert is_affirmative("ok do it")
    assert is_affirmative("ja bitte")
    assert not is_affirmative("yes 200")
    assert not is_affirmative("it")


def test_unambiguous_add_needs_amount_and_no_paid_words():
    assert is_unambiguous_add("add expense 21 for a haircut")
    assert not is_unambiguous_add("add an expense")
    assert not is_unambiguous_add("did I spend 20 on lunch?")
    assert not is_unambiguous_add("I spent 200 on food, set a limit for it")


def test_spending_questions_are_not_adds():
    assert asks_about_spending("How much have I spent on groceries")
    assert asks_about_spending("did I spend 20 on lunch")
    assert not asks_about_spending("could you add 20 for lunch")
    assert not is_unambiguous_add("how much did I spend 20")
    assert _classify("did I spend 20 on lunch") != Intent.ADD_EXPENSE
