from datetime import date
from decimal import Decimal

from core.intent import TargetType
from models.conversation import Message, TurnContext
from services.target_extractor import clean_title, extract_target


def _ctx(*turns: str, reply=None) -> TurnContext:
    roles = ("user", "assistant")
    messages = [Message(role=roles[i % 2], content=text) for i, text in enumerate(turns)]
    return TurnContext.from_messages(messages, reply=reply)


def test_goal_from_a_single_message():
    ctx = _ctx(
        "I want to save 1200 for a new phone by December",
        reply="I've set a savings goal for New Phone of $1,200.00.",
    )
    target = extract_target(ctx, "EUR", date(2026, 3, 1))

    assert target.title == "New Phone"
    assert target.target_amount == Decimal("1200.00")
    assert target.target_type is TargetType.SAVINGS
    assert target.target_date == date(2026, 12, 31)
    assert target.currency == "USD"
    assert target.category is None


def test_goal_split_over_two_messages():
    ctx = _ctx(
        "I want to save for a car",
        "How much do you want to save for your car?",
        "20000",
        reply="I've created a savings goal for your car of $20,000.00.",
    )
    target = extract_target(ctx, "USD", date(2026, 3, 1))

    assert target.title == "Car"
    assert target.target_amount == Decimal("20000.00")


def test_relative_deadline():
    ctx = _ctx("save 3000 for a trip in 6 months", reply="✅ Your savings goal is set.")
    target = extract_target(ctx, "USD", date(2026, 1, 15))

    assert target.title == "Trip"
    assert target.target_date == date(2026, 7, 15)


def test_generic_title_when_nothing_names_the_goal():
    ctx = _ctx("help me save", "Sure, how much?", "5000", reply="✅ Your savings goal is set.")
    target = extract_target(ctx, "USD", date(2026, 1, 15))

    assert target.title == "Savings Goal $5,000.00"
    assert target.description is None


def test_no_confirmation_no_goal():
    ctx = _ctx("save 1200 for a new phone", reply="How soon would you like to reach it?")
    assert extract_target(ctx, "USD") is None


def test_clean_title():
    assert clean_title("a new laptop for me by June") == "New Laptop"
    assert clean_title("the house") == "House"
    assert clean_title("it") is None
