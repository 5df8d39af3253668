from decimal import Decimal

from core.intent import TargetType
from models.conversation import Message, TurnContext
from services.limit_extractor import extract_limits, ranked_lines

RANKED = (
    "## Ranked Recommendations\n"
    "1. **Dining Out — target $59.22** (save $20.00, 25% reduction)\n"
    "   - Current spending: $79.22\n"
    "2. **Shopping — target $80.00** (save $40.00)\n"
    "## Next Step\n"
    "Want me to set these as limits?"
)


def _ctx(*turns: str, reply=None) -> TurnContext:
    roles = ("user", "assistant")
    messages = [Message(role=roles[i % 2], content=text) for i, text in enumerate(turns)]
    return TurnContext.from_messages(messages, reply=reply)


def test_limit_confirmed_in_reply():
    ctx = _ctx("set a limit for dining out at 200", reply="Done! I've set a limit for Dining Out at $200.00 per month.")
    limits = extract_limits(ctx, "EUR")

    assert len(limits) == 1
    assert limits[0].category == "Dining Out"
    assert limits[0].target_amount == Decimal("200.00")
    assert limits[0].target_type is TargetType.BUDGET
    assert limits[0].currency == "USD"
    assert limits[0].title == "Dining Out Limit"


def test_fixed_cost_limit_is_rejected():
    ctx = _ctx("cap my rent", reply="I've set a limit for Rent at $900.")
    assert extract_limits(ctx, "USD") == []


def test_ranked_lines_skip_detail_bullets():
    pairs = ranked_lines(RANKED)
    assert ("Dining Out", "$59.22") in pairs
    assert ("Shopping", "$80.00") in pairs


def test_do_it_after_ranked_list_saves_every_target():
    ctx = _ctx("analyze my budget", RANKED, "do it", reply="Done, both are in place now.")
    limits = extract_limits(ctx, "USD")

    assert [(r.category, r.target_amount) for r in limits] == [
        ("Dining Out", Decimal("59.22")),
        ("Shopping", Decimal("80.00")),
    ]


def test_yes_after_single_offer():
    ctx = _ctx(
        "my groceries are out of control",
        "Want me to set a limit for Groceries at $300?",
        "yes",
        reply="Great, it's in place.",
    )
    limits = extract_limits(ctx, "USD")
    assert [(r.category, r.target_amount) for r in limits] == [("Groceries", Decimal("300.00"))]


def test_offer_without_category_saves_nothing():
    ctx = _ctx("help", "Want me to set a spending limit?", "yes", reply="Sure, for which category?")
    assert extract_limits(ctx, "USD") == []


def test_no_agreement_saves_nothing():
    ctx = _ctx("analyze my budget", RANKED, "no thanks", reply="No problem.")
    assert extract_limits(ctx, "USD") == []


def test_bold_category_before_dash():
    ctx = _ctx("where can I cut back?", "**Dining Out** — target $59.22", "do it", reply="Done!")
    limits = extract_limits(ctx, "USD")
    assert [(r.category, r.target_amount) for r in limits] == [("Dining Out", Decimal("59.22"))]


BREAKDOWN = "1. Groceries: $320\n2. Dining Out: $150\n3. Shopping: $90"


def test_plain_breakdown_has_no_target_lines():
    assert ranked_lines(BREAKDOWN) == []


def test_ok_after_spending_breakdown_saves_nothing():
    ctx = _ctx("where does my money go", BREAKDOWN, "ok", reply="Glad that helps!")
    assert extract_limits(ctx, "USD") == []


def test_recommendations_without_target_word_are_read():
    text = "## Ranked Recommendations\n1. Groceries: $250 per month\n2. Shopping: $60\nWant me to set these as limits?"
    ctx = _ctx("analyze my budget", text, "yes", reply="Done.")

    limits = extract_limits(ctx, "USD")
    assert [(r.category, r.target_amount) for r in limits] == [
        ("Groceries", Decimal("250.00")),
        ("Shopping", Decimal("60.00")),
    ]
