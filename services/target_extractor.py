# FILE: services/target_extractor.py
"""
Savings-target extraction (post-call, premium only).

Only runs when the reply explicitly confirms a goal. The amount and the
title are then pieced together from the conversation:

1. same_message        "save 1200 for a new phone by December"
2. split_messages      "I want to save for a car" / "20000"
3. context_description amount from the user, title from the assistant's
                       question or from the reply's confirmation text
4. theme               phone / hotel / trip / car / ... lexicon
5. generic             "Savings Goal $5,000.00"
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import ValidationError

from core.intent import TargetType
from models.conversation import TurnContext
from models.records import TargetRecord
from services.amounts import (
    TRAILING_DATE_RE,
    detect_currency,
    find_amount,
    format_money,
    has_amount,
    parse_target_date,
)
from services.limit_extractor import is_target_confirmation
from services.rules import Rule, first_match
from services.vocabulary import is_affirmative

_I = re.IGNORECASE

THEMES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("iphone", "smartphone", "phone", "handy", "móvil", "movil"), "New Phone"),
    (("hotel", "airbnb"), "Hotel Stay"),
    (("trip", "vacation", "holiday", "travel", "urlaub", "reise", "viaje", "vacaciones"), "Trip"),
    (("car", "auto", "vehicle", "coche"), "New Car"),
    (("house", "home", "apartment", "down payment", "wohnung", "casa"), "House"),
    (("wedding", "hochzeit", "boda"), "Wedding"),
    (("education", "college", "tuition", "university", "school", "studium"), "Education Fund"),
    (("retirement", "pension", "rente", "jubilación"), "Retirement Fund"),
)

SMALL_WORDS = frozenset({"a", "an", "the", "and", "or", "of", "to", "in", "on", "for", "at", "by", "with"})

_FILLER_WORDS = frozenset({
    "i", "i'd", "i'm", "id", "im", "want", "wanna", "would", "like", "to", "save", "saving", "savings",
    "set", "setup", "up", "a", "an", "my", "goal", "goals", "target", "create", "please", "need",
    "for", "towards", "toward", "by", "about", "around", "of", "with", "let's", "lets", "can", "you",
    "help", "me", "new", "add", "make", "start", "and", "the", "it", "is", "be", "should",
    "yes", "ok", "okay", "sure", "do", "that", "this",
})

_amount_token_re = re.compile(
    r"[$€£¥₹]?\s*\d[\d.,]*\s*(?:k\b)?\s*(?:€|(?:eur|euros?|usd|dollars?|bucks|pounds?)\b)?", _I
)
_for_clause_re = re.compile(
    r"\b(?:save|saving|sparen|ahorrar|goal|target)\b[^.!?\n]*?\b(?:for|towards?|to\s+buy|f[üu]r|para)\s+([^.!?\n]+)",
    _I,
)
_leading_re = re.compile(
    r"^(?:(?:for|to|towards?|a|an|the|my|our|some|buy|buying|get|getting|save|saving)\s+)+", _I
)
_personal_suffix_re = re.compile(
    r"\s+(?:for\s+(?:me|myself|us|ourselves|my\s+(?:family|wife|husband|kids?|son|daughter|partner))|of\s+mine)\s*$",
    _I,
)
_question_re = re.compile(
    r"\b(?:sav(?:e|ing)\s+(?:up\s+)?for|goal\s+for|towards?)\s+(?:your|a|an|the)?\s*([^?.!,\n]+)", _I
)
_reply_title_re = re.compile(
    r"\b(?:goal|target)\s+(?:for|called|named|:)\s+[\"“*]*([A-Za-z][^$€£¥₹\d\n.,!?\"”*()]*?)[\"”*]*"
    r"\s*(?=\bof\b|\bat\b|\bwith\b|\bworth\b|—|–|-|:|,|\.|\(|$)",
    _I,
)


# -----------------------------
# Title helpers
# -----------------------------
def title_case(text: str) -> str:
    words = text.split()
    out = []
    for i, word in enumerate(words):
        lowered = word.lower()
        if i > 0 and lowered in SMALL_WORDS:
            out.append(lowered)
        else:
            out.append(word[:1].upper() + word[1:])
    return " ".join(out)


def clean_title(raw: Optional[str]) -> Optional[str]:
    """Drop leading prepositions, trailing date clauses and "for me" style suffixes."""
    if not raw:
        return None
    text = re.sub(r"[*_\"“”]", "", raw)
    text = re.sub(r"\s+", " ", text).strip(" .,;:!?-—–")
    previous = None
    while text and text != previous:
        previous = text
        text = _leading_re.sub("", text)
        text = TRAILING_DATE_RE.sub("", text)
        text = re.sub(r"\s+", " ", _amount_token_re.sub(" ", text)).strip()
        text = _personal_suffix_re.sub("", text).strip(" .,;:!?-—–")
    words = [w for w in text.split() if w]
    if not words or all(w.lower() in _FILLER_WORDS for w in words):
        return None
    return title_case(" ".join(words[:6]))


def description_from_user(text: Optional[str]) -> Optional[str]:
    """What the user is saving for, if they said it."""
    if not text or is_affirmative(text):
        return None
    m = _for_clause_re.search(text)
    if m:
        return clean_title(m.group(1))
    stripped = _amount_token_re.sub(" ", TRAILING_DATE_RE.sub("", text))
    words = [w for w in re.findall(r"[A-Za-zÀ-ÿ'&-]+", stripped) if w.lower() not in _FILLER_WORDS]
    if not words or not any(len(w) >= 3 for w in words):
        return None
    return clean_title(" ".join(words))


def description_from_question(text: Optional[str]) -> Optional[str]:
    m = _question_re.search(text or "")
    return clean_title(m.group(1)) if m else None


def description_from_reply(text: Optional[str]) -> Optional[str]:
    m = _reply_title_re.search(text or "")
    return clean_title(m.group(1)) if m else None


def theme_title(*texts: Optional[str]) -> Optional[str]:
    joined = " ".join(t for t in texts if t).lower()
    for words, title in THEMES:
        for word in words:
            if re.search(rf"(?<![\w]){re.escape(word)}(?![\w])", joined):
                return title
    return None


# -----------------------------
# Rules
# -----------------------------
def _user_pair(turn: TurnContext) -> Tuple[Optional[str], str]:
    texts = turn.recent_user_texts(2)
    if len(texts) == 2:
        return texts[0], texts[1]
    return None, turn.last_user_text


def _amount(turn: TurnContext) -> Optional[Decimal]:
    earlier, last = _user_pair(turn)
    return find_amount(last) or find_amount(earlier) or find_amount(turn.reply)


def _same_message(turn: TurnContext) -> Optional[Tuple[str, Decimal]]:
    last = turn.last_user_text
    if not has_amount(last):
        return None
    title = description_from_user(last)
    return (title, find_amount(last)) if title else None


def _split_messages(turn: TurnContext) -> Optional[Tuple[str, Decimal]]:
    earlier, last = _user_pair(turn)
    if not earlier:
        return None
    for amount_text, title_text in ((last, earlier), (earlier, last)):
        if has_amount(amount_text) and not has_amount(title_text):
            title = description_from_user(title_text)
            if title:
                return title, find_amount(amount_text)
    return None


def _context_description(turn: TurnContext) -> Optional[Tuple[str, Decimal]]:
    amount = _amount(turn)
    if amount is None:
        return None
    title = description_from_question(turn.previous_assistant_text) or description_from_reply(turn.reply)
    return (title, amount) if title else None


def _theme(turn: TurnContext) -> Optional[Tuple[str, Decimal]]:
    amount = _amount(turn)
    if amount is None:
        return None
    earlier, last = _user_pair(turn)
    title = theme_title(last, earlier, turn.previous_assistant_text, turn.reply)
    return (title, amount) if title else None


def _generic(turn: TurnContext) -> Optional[Tuple[str, Decimal]]:
    amount = _amount(turn)
    return ("", amount) if amount is not None else None


TARGET_RULES: Tuple[Rule, ...] = (
    Rule("same_message", _same_message),
    Rule("split_messages", _split_messages),
    Rule("context_description", _context_description),
    Rule("theme", _theme),
    Rule("generic", _generic),
)


def extract_target(ctx: TurnContext, currency: str, today: Optional[date] = None) -> Optional[TargetRecord]:
    if not is_target_confirmation(ctx.reply):
        return None
    match = first_match(TARGET_RULES, ctx)
    if match is None:
        return None
    title, amount = match.value
    if amount is None:
        return None

    earlier, last = _user_pair(ctx)
    currency = detect_currency(" ".join(t for t in (last, earlier) if t)) or detect_currency(ctx.reply) or currency
    title = title or f"Savings Goal {format_money(amount, currency)}"
    target_date = (
        parse_target_date(last, today)
        or parse_target_date(earlier, today)
        or parse_target_date(ctx.reply, today)
    )
    try:
        return TargetRecord(
            title=title,
            target_amount=amount,
            currency=currency,
            target_type=TargetType.SAVINGS,
            target_date=target_date,
            description=title if match.rule != "generic" else None,
        )
    except ValidationError:
        return None
