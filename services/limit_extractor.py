# FILE: services/limit_extractor.py
"""
Spending-limit extraction (post-call, premium only).

Rules, first match wins:
1. reply_confirmation   "I've set a limit for Dining Out at $59.22" in the reply
2. single_suggestion    bare "yes" after exactly one concrete category+amount offer
3. ranked_list          "**Dining Out** — target $59.22" lines in the previous
                        assistant message, when the user agreed

Every candidate must name a real variable-cost category and a positive
amount. Offers without a category ("want me to set a limit?") never produce
a limit.
"""

import re
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from core.categories import is_variable_cost
from core.intent import TargetType
from models.conversation import TurnContext
from models.records import TargetRecord
from services.amounts import NUMBER, SYMBOL, detect_currency, parse_amount, to_money
from services.canonicalizer import find_category
from services.rules import Rule, first_match
from services.vocabulary import is_affirmative

_I = re.IGNORECASE
_AMOUNT = rf"(?P<amount>{SYMBOL}?\s*{NUMBER}\s*(?:€|eur|euros?|usd|dollars?)?)"
_CATEGORY = r"\**(?P<category>[A-Za-z][A-Za-z&' ]{1,40}?)\**"

LIMIT_CONFIRM_RE = re.compile(
    rf"\bi(?:'ve|\s+have)\s+set\s+(?:up\s+)?(?:a|an|the|your)?\s*(?:new\s+)?(?:monthly\s+)?(?:spending\s+)?"
    rf"(?:limit|budget|cap)\s+(?:for|on)\s+{_CATEGORY}\s+(?:at|to|of)\s+(?:a\s+)?(?:monthly\s+)?(?:target\s+(?:of\s+)?)?{_AMOUNT}",
    _I,
)

_LIMIT_SAVED_RE = re.compile(
    r"✅[^\n]*\b(?:spending\s+)?limit\b|\b(?:spending\s+)?limit\s+(?:has\s+been\s+|is\s+)?(?:saved|created|set)\b",
    _I,
)

TARGET_CONFIRM_RE = re.compile(
    r"\bi(?:'ve|\s+have)\s+(?:set|created|added|saved)\s+(?:up\s+)?(?:a|an|your|the)\s+(?:new\s+)?(?:savings\s+)?(?:goal|target)\b"
    r"|\b(?:savings\s+)?(?:goal|target)\s+(?:has\s+been\s+|is\s+(?:now\s+)?)?(?:saved|created|set(?:\s+up)?)\b"
    r"|✅[^\n]*\b(?:savings\s+)?(?:goal|target)\b",
    _I,
)

# "Want me to set a limit for Groceries at $300?" / "limit of $300 for Groceries"
_SUGGESTION_RE = re.compile(
    rf"\b(?:limit|cap|budget)\s+(?:for|on)\s+{_CATEGORY}\s+(?:at|to|of)\s+(?:a\s+)?(?:monthly\s+)?{_AMOUNT}",
    _I,
)
_SUGGESTION_REVERSED_RE = re.compile(
    rf"\b(?:limit|cap|budget)\s+of\s+{_AMOUNT}\s+(?:for|on)\s+{_CATEGORY}(?=[\s.,;:!?*]|$)",
    _I,
)

_RANKED_HEAD_RE = re.compile(
    r"^\s*(?:[-*•]|\d+[.)])?\s*\**(?P<category>[A-Za-z][A-Za-z&' ]{1,40}?)\**\s*[—–:-]+\s*(?P<rest>.+)$"
)
_TARGET_AMOUNT_RE = re.compile(
    rf"\b(?:target|limit|cap|suggested)\b[^\d$€£¥₹\n]{{0,20}}({SYMBOL}?\s*{NUMBER})", _I
)
_ANY_AMOUNT_RE = re.compile(rf"({SYMBOL}\s*{NUMBER}|{NUMBER}\s*(?:€|eur|usd|\$))", _I)
# A plain "Groceries: $320" breakdown is current spending, not a proposal
_RECOMMENDATIONS_RE = re.compile(
    r"\b(?:recommend(?:ed|ations?)|suggested\s+(?:limits?|budgets?|targets?)"
    r"|set\s+(?:these|them|those|all)\s+(?:up\s+)?as\s+(?:limits?|budgets?|targets?)"
    r"|(?:want|like)\s+me\s+to\s+set\s+(?:these|them|those|up)\b)",
    _I,
)


def is_limit_confirmation(reply: Optional[str]) -> bool:
    if not reply:
        return False
    return LIMIT_CONFIRM_RE.search(reply) is not None or _LIMIT_SAVED_RE.search(reply) is not None


def is_target_confirmation(reply: Optional[str]) -> bool:
    """A savings goal/target confirmation that is not about a spending limit."""
    if not reply or is_limit_confirmation(reply):
        return False
    return TARGET_CONFIRM_RE.search(reply) is not None


# -----------------------------
# Candidate validation
# -----------------------------
def _candidate(category_phrase: str, amount_text: str, currency: str) -> Optional[TargetRecord]:
    category = find_category(category_phrase)
    if category is None or not is_variable_cost(category):
        return None
    amount = to_money(parse_amount(amount_text))
    if amount is None:
        return None
    try:
        return TargetRecord(
            title=f"{category} Limit",
            target_amount=amount,
            currency=detect_currency(amount_text) or currency,
            target_type=TargetType.BUDGET,
            category=category,
        )
    except ValidationError:
        return None


def _unique(records: Iterable[Optional[TargetRecord]]) -> List[TargetRecord]:
    seen = set()
    out = []
    for record in records:
        if record is None or record.category in seen:
            continue
        seen.add(record.category)
        out.append(record)
    return out


def _from_matches(pattern: re.Pattern, text: str, currency: str) -> List[TargetRecord]:
    return _unique(
        _candidate(m.group("category"), m.group("amount"), currency)
        for m in pattern.finditer(text or "")
    )


def ranked_lines(text: Optional[str]) -> List[Tuple[str, str]]:
    """
    (category phrase, amount text) pairs from a ranked recommendation list.
    Lines need target/limit wording unless the message is a set of
    recommendations or offers to set them.
    """
    proposes = _RECOMMENDATIONS_RE.search(text or "") is not None
    pairs = []
    for line in (text or "").splitlines():
        head = _RANKED_HEAD_RE.match(line)
        if not head:
            continue
        rest = head.group("rest")
        amount = _TARGET_AMOUNT_RE.search(rest)
        if amount is None and proposes:
            amount = _ANY_AMOUNT_RE.search(rest)
        if amount:
            pairs.append((head.group("category").strip(), amount.group(1)))
    return pairs


# -----------------------------
# Rules
# -----------------------------
def _reply_confirmation(ctx: Tuple[TurnContext, str]) -> Optional[List[TargetRecord]]:
    turn, currency = ctx
    return _from_matches(LIMIT_CONFIRM_RE, turn.reply, currency) or None


def _single_suggestion(ctx: Tuple[TurnContext, str]) -> Optional[List[TargetRecord]]:
    turn, currency = ctx
    previous = turn.previous_assistant_text or ""
    found = _unique(
        _from_matches(_SUGGESTION_RE, previous, currency)
        + _from_matches(_SUGGESTION_REVERSED_RE, previous, currency)
    )
    # Several offers and a bare "yes" is ambiguous unless it is a ranked list
    if len(found) != 1:
        return None
    return found


def _ranked_list(ctx: Tuple[TurnContext, str]) -> Optional[List[TargetRecord]]:
    turn, currency = ctx
    records = _unique(
        _candidate(category, amount, currency)
        for category, amount in ranked_lines(turn.previous_assistant_text)
    )
    return records or None


def _user_agreed(ctx: Tuple[TurnContext, str]) -> bool:
    return is_affirmative(ctx[0].last_user_text)


LIMIT_RULES: Tuple[Rule, ...] = (
    Rule("reply_confirmation", _reply_confirmation),
    Rule("single_suggestion", _single_suggestion, applies=_user_agreed),
    Rule("ranked_list", _ranked_list, applies=_user_agreed),
)


def extract_limits(ctx: TurnContext, currency: str) -> List[TargetRecord]:
    match = first_match(LIMIT_RULES, (ctx, currency))
    return match.value if match else []
