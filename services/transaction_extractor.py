# FILE: services/transaction_extractor.py
"""
Transaction extraction.

Pre-call: the latest user message alone, and only when the phrasing is an
unambiguous add-income / add-expense with a number.

Post-call: the model's reply decides whether something was recorded
(explicit confirmation phrase, or a success marker with an amount and a
real category); the record itself is still built from the user's words
first, the reply only fills gaps.
"""

import re
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import ValidationError

from core.categories import ALL_CATEGORY_NAMES, DEFAULT_CATEGORY, is_income_only
from core.intent import TransactionKind
from models.conversation import TurnContext
from models.records import TransactionRecord
from services.amounts import detect_currency, has_amount, resolve_amount, resolve_timestamp
from services.canonicalizer import normalize
from services.limit_extractor import is_limit_confirmation, is_target_confirmation
from services.replies import has_success_marker
from services.rules import Rule, first_match
from services.vocabulary import (
    ADD_INCOME_RE,
    TRANSFER_RE,
    asks_about_spending,
    is_short_followup,
    is_unambiguous_add,
    mentions_expense,
)

_I = re.IGNORECASE

_preposition_re = re.compile(
    r"\b(?:on|for|at)\s+(?:an?\s+|the\s+|my\s+|some\s+|our\s+)?([^.,;!?\n]+)", _I
)
_strip_numbers_re = re.compile(r"[$€£¥₹]?\s*\d[\d.,]*\s*(?:€|(?:eur|euros?|usd|dollars?|bucks)\b)?", _I)
_token_re = re.compile(r"[A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'&-]*")

# First-person or sentence-initial only: "I've added your expense", "Recorded the income",
# "✅ Logged a transfer". "you recorded an expense" describes the past.
CONFIRMATION_RE = re.compile(
    r"(?:\bi(?:'ve|\s+have|\s+just)?\s+(?:just\s+)?|(?:^|[.!?✅]\s*)(?:got\s+it[,.!]?\s+|done[,.!]?\s+)?)"
    r"(?:added|recorded|logged|saved|tracked|noted)\s+"
    r"(?:your|an?|the|this|that)?\s*(?:new\s+)?(?P<word>income|expense|transfer|transaction|payment|purchase)\b",
    _I | re.MULTILINE,
)

_REPLY_KIND = {
    "income": TransactionKind.INCOME,
    "expense": TransactionKind.EXPENSE,
    "payment": TransactionKind.EXPENSE,
    "purchase": TransactionKind.EXPENSE,
    "transfer": TransactionKind.TRANSFER,
}

STOP_WORDS = frozenset({
    "a", "an", "the", "i", "i'm", "i've", "me", "my", "we", "our", "you", "your", "it", "that", "this",
    "for", "on", "at", "to", "of", "in", "and", "with", "from", "by", "per", "as", "is", "was", "just",
    "add", "added", "adding", "expense", "expenses", "income", "record", "log", "track", "new",
    "spent", "spend", "paid", "pay", "payed", "bought", "purchased", "cost", "costs", "received",
    "got", "earned", "made", "transfer", "transferred", "moved", "please", "today", "yesterday",
    "day", "days", "week", "weeks", "month", "months", "year", "years", "every", "each", "about",
    "around", "only", "some", "euro", "euros", "eur", "dollar", "dollars", "usd", "bucks", "money",
    "yes", "ok", "okay", "before",
})
_NON_CATEGORY = frozenset({"it", "that", "this", "them", "me", "you"})


# -----------------------------
# Field helpers
# -----------------------------
def detect_kind(text: Optional[str]) -> Optional[TransactionKind]:
    """Transfer wins; income and expense vocabulary together reads as an expense."""
    if not text:
        return None
    if TRANSFER_RE.search(text):
        return TransactionKind.TRANSFER
    if mentions_expense(text):
        return TransactionKind.EXPENSE
    if ADD_INCOME_RE.search(text):
        return TransactionKind.INCOME
    return None


def category_phrase(text: Optional[str]) -> Optional[str]:
    """The last phrase after on/for/at that is not just "it" or a number."""
    phrases = []
    for m in _preposition_re.finditer(text or ""):
        phrase = _strip_numbers_re.sub(" ", m.group(1)).strip()
        if phrase and phrase.lower() not in _NON_CATEGORY:
            phrases.append(phrase)
    return phrases[-1] if phrases else None


def resolve_category(text: Optional[str]) -> str:
    """on/for/at phrase, then the final words, then Other."""
    phrase = category_phrase(text)
    if phrase:
        category = normalize(phrase)
        if category != DEFAULT_CATEGORY:
            return category
    tail = " ".join(meaningful_words(text, limit=None)[-3:])
    if tail:
        return normalize(tail)
    return DEFAULT_CATEGORY


def category_in_reply(reply: Optional[str]) -> Optional[str]:
    """Earliest canonical category name quoted in the model's reply."""
    if not reply:
        return None
    found: List[Tuple[int, str]] = []
    for name in ALL_CATEGORY_NAMES:
        m = re.search(rf"(?<![\w]){re.escape(name)}(?![\w])", reply, _I)
        if m:
            found.append((m.start(), name))
    return min(found)[1] if found else None


def meaningful_words(text: Optional[str], limit: Optional[int] = 3) -> List[str]:
    words = []
    for token in _token_re.findall(_strip_numbers_re.sub(" ", text or "")):
        if token.lower() in STOP_WORDS or len(token) < 2:
            continue
        words.append(token)
        if len(words) == limit:
            break
    return words


def build_description(text: Optional[str], category: str) -> str:
    """Up to three meaningful words, title-cased; the category name otherwise."""
    words = meaningful_words(category_phrase(text)) or meaningful_words(text)
    if not words:
        return category
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)[:100]


def build_transaction(
    user_text: str,
    currency: Optional[str],
    now: Optional[datetime] = None,
    reply_text: Optional[str] = None,
    kind: Optional[TransactionKind] = None,
) -> Optional[TransactionRecord]:
    kind = detect_kind(user_text) or kind
    if kind is None:
        return None

    amount = resolve_amount(user_text, reply_text)
    if amount is None:
        return None

    category = resolve_category(user_text)
    if category == DEFAULT_CATEGORY and reply_text:
        category = category_in_reply(reply_text) or category

    if kind is TransactionKind.INCOME:
        if not is_income_only(category):
            category = DEFAULT_CATEGORY
    elif is_income_only(category):
        return None

    try:
        return TransactionRecord(
            kind=kind,
            amount=amount,
            category=category,
            description=build_description(user_text, category),
            timestamp=resolve_timestamp(user_text, now),
            currency=detect_currency(user_text) or currency,
        )
    except ValidationError:
        return None


# -----------------------------
# Pre-call
# -----------------------------
def extract_precall(ctx: TurnContext, currency: Optional[str], now: Optional[datetime] = None) -> Optional[TransactionRecord]:
    text = ctx.last_user_text
    if not is_unambiguous_add(text):
        return None
    return build_transaction(text, currency, now)


# -----------------------------
# Post-call
# -----------------------------
def postcall_user_text(ctx: TurnContext) -> str:
    """A short follow-up ("groceries", "21") is read together with the turn before it."""
    texts = ctx.recent_user_texts(2)
    if len(texts) == 2 and is_short_followup(texts[1], max_words=4):
        return f"{texts[0]} {texts[1]}"
    return ctx.last_user_text


def _confirmed(ctx) -> Optional[TransactionRecord]:
    turn, currency, now = ctx
    m = CONFIRMATION_RE.search(turn.reply or "")
    if not m:
        return None
    return build_transaction(
        postcall_user_text(turn), currency, now,
        reply_text=turn.reply, kind=_REPLY_KIND.get(m.group("word").lower(), TransactionKind.EXPENSE),
    )


def _marker_fallback(ctx) -> Optional[TransactionRecord]:
    turn, currency, now = ctx
    user_text = postcall_user_text(turn)
    if not (has_amount(user_text) or has_amount(turn.reply)):
        return None
    record = build_transaction(user_text, currency, now, reply_text=turn.reply)
    if record is None or record.category == DEFAULT_CATEGORY:
        return None
    return record


def _is_plain_reply(ctx) -> bool:
    """A reply about a transaction, to a turn that was not a question about past spending."""
    turn = ctx[0]
    reply = turn.reply
    if not reply or asks_about_spending(turn.last_user_text):
        return False
    return not is_target_confirmation(reply) and not is_limit_confirmation(reply)


TRANSACTION_RULES = (
    Rule("confirmation_phrase", _confirmed, applies=_is_plain_reply),
    Rule(
        "success_marker_fallback",
        _marker_fallback,
        applies=lambda ctx: _is_plain_reply(ctx) and has_success_marker(ctx[0].reply),
    ),
)


def extract_postcall(ctx: TurnContext, currency: Optional[str], now: Optional[datetime] = None) -> Optional[TransactionRecord]:
    match = first_match(TRANSACTION_RULES, (ctx, currency, now))
    return match.value if match else None
