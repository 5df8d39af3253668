# FILE: services/intent_classifier.py
"""
Intent classification over the FULL message history.

Pure and deterministic: no LLM calls, no DB access. The same words can mean
different things depending on what the assistant said last ("yes" after a
goal proposal is SetTarget, "groceries" after "what was it for?" is
AddExpense), so every follow-up rule looks at the preceding assistant
message as well as the user's latest text.
"""

import re
from typing import Optional, Sequence, Tuple

from core.intent import Intent
from models.conversation import Message, TurnContext
from services.amounts import has_amount
from services.canonicalizer import find_category, normalize
from services.rules import Rule, first_match
from services.vocabulary import (
    ADD_INCOME_RE,
    ANALYSIS_RE,
    GREETING_RE,
    IDENTITY_RE,
    SPENDING_RE,
    TRANSFER_RE,
    asks_about_spending,
    is_affirmative,
    is_question,
    is_short_followup,
    mentions_expense,
    mentions_goal,
    mentions_limit,
)

# Assistant-side cues for follow-up turns
_ASSISTANT_GOAL_RE = re.compile(
    r"\b(?:goals?|targets?|save\s+for|saving\s+for|savings|limits?|budget\s+for)\b", re.IGNORECASE
)
_ASSISTANT_EXPENSE_RE = re.compile(
    r"\b(?:expenses?|spent|spend|what\s+was\s+it\s+for|what\s+did\s+you\s+buy|which\s+category|how\s+much\s+did\s+(?:it|you))\b",
    re.IGNORECASE,
)
_ASSISTANT_INCOME_RE = re.compile(
    r"\b(?:income|salary|earn(?:ed)?|paycheck|where\s+did\s+(?:it|the\s+money)\s+come\s+from)\b", re.IGNORECASE
)
_ASSISTANT_ANALYSIS_RE = re.compile(
    r"\b(?:quick\s+summary|ranked\s+recommendations|next\s+step|analysis|breakdown)\b", re.IGNORECASE
)


def _text(ctx: TurnContext) -> str:
    return ctx.last_user_text


def _prev(ctx: TurnContext) -> str:
    return ctx.previous_assistant_text or ""


def _is_bare_answer(text: str) -> bool:
    """A short reply that only makes sense against the previous question."""
    if not is_short_followup(text, max_words=4):
        return False
    return (
        is_affirmative(text)
        or has_amount(text)
        or find_category(text) is not None
        or normalize(text) != "Other"
    )


def _kind_intent(text: str) -> Optional[Intent]:
    income = ADD_INCOME_RE.search(text) is not None
    expense = mentions_expense(text) or TRANSFER_RE.search(text) is not None
    if expense:
        return Intent.ADD_EXPENSE
    if income:
        return Intent.ADD_INCOME
    return None


def _explicit_record(text: str) -> Optional[Intent]:
    # Questions about past spending are not requests to record something
    if asks_about_spending(text) or ANALYSIS_RE.search(text):
        return None
    if mentions_goal(text) or mentions_limit(text):
        return None
    return _kind_intent(text)


def _followup(ctx: TurnContext) -> Optional[Intent]:
    prev = _prev(ctx)
    if not prev or not _is_bare_answer(_text(ctx)):
        return None
    if _ASSISTANT_GOAL_RE.search(prev):
        return Intent.SET_TARGET
    if _ASSISTANT_INCOME_RE.search(prev) and not _ASSISTANT_EXPENSE_RE.search(prev):
        return Intent.ADD_INCOME
    if _ASSISTANT_EXPENSE_RE.search(prev):
        return Intent.ADD_EXPENSE
    if _ASSISTANT_ANALYSIS_RE.search(prev):
        return Intent.ANALYZE_BUDGET
    return None


# Order is the precedence: first rule that extracts an intent wins
INTENT_RULES: Tuple[Rule, ...] = (
    Rule(
        "greeting_or_identity",
        lambda ctx: Intent.EXPLAIN_IDENTITY,
        applies=lambda ctx: bool(GREETING_RE.search(_text(ctx)) or IDENTITY_RE.search(_text(ctx))),
    ),
    Rule("explicit_record", lambda ctx: _explicit_record(_text(ctx))),
    Rule(
        "set_target",
        lambda ctx: Intent.SET_TARGET,
        applies=lambda ctx: mentions_goal(_text(ctx)) or mentions_limit(_text(ctx)),
    ),
    Rule(
        "explain_spending",
        lambda ctx: Intent.EXPLAIN_SPENDING,
        applies=lambda ctx: SPENDING_RE.search(_text(ctx)) is not None,
    ),
    Rule(
        "analyze_budget",
        lambda ctx: Intent.ANALYZE_BUDGET,
        applies=lambda ctx: ANALYSIS_RE.search(_text(ctx)) is not None,
    ),
    Rule("contextual_followup", _followup),
    Rule(
        "record_phrasing_without_amount",
        lambda ctx: _kind_intent(_text(ctx)),
        applies=lambda ctx: not is_question(_text(ctx)),
    ),
)


def classify(ctx: TurnContext) -> Optional[Intent]:
    """Returns exactly one Intent, or None when the turn is unrecognized."""
    if not ctx.last_user_text:
        return None
    match = first_match(INTENT_RULES, ctx)
    return match.value if match else None


def classify_messages(messages: Sequence[Message]) -> Optional[Intent]:
    return classify(TurnContext.from_messages(messages))
