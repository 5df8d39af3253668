# FILE: services/entitlement.py
"""
Entitlement gate.

Decides whether a turn needs Premium, before the model is called and again
on the model's reply. Detection is over the literal text of the turn and the
assistant message it answers, so a paid flow cannot be continued with a bare
"yes" once it has started.

Always-free turns (greetings, "what is this app", unambiguous add-income /
add-expense) are recognised first and never reach the paid checks.
"""

import logging
import re
from asyncio import wait_for
from datetime import datetime, timezone
from typing import Optional, Sequence

from configurations.config import PAYWALL_TIMEOUT, PERSISTENCE_TIMEOUT
from core.intent import Entitlement, Intent
from models.conversation import Message, TurnContext
from services.amounts import has_amount
from services.canonicalizer import find_category, normalize
from services.replies import FALLBACK_PAYWALL_REPLY
from services.vocabulary import (
    ANALYSIS_RE,
    SPENDING_RE,
    is_affirmative,
    is_greeting_or_identity,
    is_short_followup,
    is_unambiguous_add,
    mentions_goal,
    mentions_limit,
)

# -----------------------------
# Logging Setup
# -----------------------------
logger = logging.getLogger("entitlement_gate")
logger.setLevel(logging.INFO)
if not logger.handlers:
    fh = logging.FileHandler("entitlement_gate.log")
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh.setFormatter(formatter)
    logger.addHandler(fh)


# Previous assistant content that marks a paid flow in progress
PAID_FLOW_RE = re.compile(
    r"\b(?:limits?|goals?|targets?|budget(?:s|ing)?|ranked|recommendations?|summary|premium"
    r"|subscription|subscribe|upgrade|sparziel|ausgabenlimit|l[ií]mite|presupuesto|meta)\b",
    re.IGNORECASE,
)

# "**Dining Out** — target $59.22", "1. Groceries: $320", "- Shopping — $120"
RANKED_LINE_RE = re.compile(
    r"^\s*(?:(?:[-*•]|\d+[.)])\s*\**|\*\*)[a-z][\w&' ]{2,40}?\**"
    r"\s*[—–:-]\s*(?:target\s*)?(?:[$€£¥₹]\s*\d|\d[\d.,]*\s*(?:€|eur|usd|\$))",
    re.IGNORECASE | re.MULTILINE,
)

# Reply shapes a free user must never see
PAID_REPLY_RE = re.compile(
    r"(?:\bi(?:'ve|\s+have)\s+(?:set|created)\s+(?:a|up\s+a|your|the)\s+(?:monthly\s+|spending\s+|savings\s+)?"
    r"(?:limit|goal|target|budget)"
    r"|\b(?:spending\s+limit|monthly\s+limit|savings\s+goal)\b[^\n]{0,60}?[$€£¥₹]\s*\d"
    r"|\bquick\s+summary\b|\branked\s+recommendations\b|\bbudget\s+analysis\b"
    r"|\bsuggested\s+(?:limit|target|budget)s?\b)",
    re.IGNORECASE,
)

_FIGURES_RE = re.compile(r"\d|[$€£¥₹]")

PAYWALL_INSTRUCTION = (
    "You are Anita, a friendly personal finance assistant. The user asked for something "
    "that needs a Premium subscription (savings goals, spending limits, budget analysis or "
    "spending breakdowns). Acknowledge their request in one or two short sentences, say that "
    "it needs an active Premium subscription, and mention they can keep adding income and "
    "expenses for free. Do NOT perform, simulate or preview the action. Do NOT include any "
    "numbers, amounts, categories or recommendations."
)


# -----------------------------
# Entitlement resolution
# -----------------------------
async def resolve_entitlement(db, owner_id: str, hint: Optional[str] = None,
                              timeout: float = PERSISTENCE_TIMEOUT) -> Entitlement:
    """
    A client "free" hint is final; anything else is checked against the
    subscription record. When the datastore cannot answer, the user is free.
    """
    if hint == Entitlement.FREE.value:
        return Entitlement.FREE
    if db is None:
        return Entitlement.FREE
    try:
        subscription = await wait_for(
            db.subscription.find_first(where={"ownerId": owner_id, "status": "active"}),
            timeout=timeout,
        )
    except Exception as e:
        logger.warning(f"[ENTITLEMENT] user_id={owner_id} lookup failed, resolving free: {e}")
        return Entitlement.FREE

    if subscription is None or getattr(subscription, "plan", None) != Entitlement.PREMIUM.value:
        return Entitlement.FREE
    expires_at = getattr(subscription, "expiresAt", None)
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            return Entitlement.FREE
    return Entitlement.PREMIUM


# -----------------------------
# Pre-call checks
# -----------------------------
def is_always_free(text: Optional[str]) -> bool:
    return is_greeting_or_identity(text) or is_unambiguous_add(text)


def _is_followup_answer(text: str) -> bool:
    if is_affirmative(text):
        return True
    if not is_short_followup(text, max_words=4):
        return False
    return has_amount(text) or find_category(text) is not None or normalize(text) != "Other"


def is_ongoing_paid_flow(tail: Sequence[Message]) -> bool:
    """
    The assistant's last message was about limits, goals, a ranked list, a
    money summary or the subscription itself, and the user only answered it.
    """
    ctx = TurnContext.from_messages(tail)
    previous = ctx.previous_assistant_text
    if not previous or not ctx.last_user_text:
        return False
    if not (PAID_FLOW_RE.search(previous) or RANKED_LINE_RE.search(previous)):
        return False
    return _is_followup_answer(ctx.last_user_text)


def is_paid_intent(last_user_message: str, tail: Sequence[Message] = ()) -> bool:
    if is_always_free(last_user_message):
        return False
    text = last_user_message or ""
    if mentions_limit(text) or mentions_goal(text):
        return True
    if ANALYSIS_RE.search(text) or SPENDING_RE.search(text):
        return True
    return is_ongoing_paid_flow(tail)


def requires_premium(intent: Optional[Intent], ctx: TurnContext) -> bool:
    """Combined pre-call decision: the classified pattern plus the literal text."""
    text = ctx.last_user_text
    if is_always_free(text):
        return False
    if intent is not None and intent.is_paid():
        return True
    return is_paid_intent(text, ctx.tail())


# -----------------------------
# Post-call check
# -----------------------------
def is_paid_reply(reply: Optional[str]) -> bool:
    """Ranked categories, limit/goal proposals or analysis sections."""
    if not reply:
        return False
    if PAID_REPLY_RE.search(reply):
        return True
    return len(RANKED_LINE_RE.findall(reply)) >= 2


# -----------------------------
# Paywall reply
# -----------------------------
def _contains_figures(text: str) -> bool:
    return _FIGURES_RE.search(text) is not None


async def build_paywall_reply(context: TurnContext, completion=None) -> str:
    """
    Ask the model for a short upgrade notice; fall back to the fixed text
    on any failure or when the generated text carries figures.
    """
    if completion is None:
        return FALLBACK_PAYWALL_REPLY
    last_user = context.last_user_text
    try:
        text = await completion.complete(
            [Message(role="user", content=last_user)],
            PAYWALL_INSTRUCTION,
            max_tokens=200,
            temperature=0.4,
            timeout=PAYWALL_TIMEOUT,
        )
    except Exception as e:
        logger.warning(f"[PAYWALL] generation failed, using fallback: {e}")
        return FALLBACK_PAYWALL_REPLY

    if not text or _contains_figures(text):
        logger.info("[PAYWALL] generated text rejected, using fallback")
        return FALLBACK_PAYWALL_REPLY
    return text.strip()
