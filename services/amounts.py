# FILE: services/amounts.py
"""
Money, currency and date parsing shared by the extractors.

Amount preference (user text is always tried before the model's reply):
1. a number adjacent to paid / cost / spent / total words
2. a number followed by "for it" / "for that"
3. the largest decimal-bearing number
4. the first number
"""

import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from services.rules import Rule, first_match

CENT = Decimal("0.01")

NUMBER = r"(\d{1,3}(?:[.,]\d{3})+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?)"
SYMBOL = r"[$€£¥₹]"
CURRENCY_WORD = r"(?:€|eur|euros?|\$|usd|dollars?|bucks|£|gbp|pounds?)"

_paid_adjacent_re = re.compile(
    rf"\b(?:payed|paid|pay|cost|costs|spent|spend|total|amount|price)\b"
    rf"(?:\s+(?:of|was|is|me|about|around|only))*\s*{SYMBOL}?\s*{NUMBER}",
    re.IGNORECASE,
)
_for_it_re = re.compile(
    rf"{SYMBOL}?\s*{NUMBER}\s*{CURRENCY_WORD}?\s*for\s+(?:it|that)\b",
    re.IGNORECASE,
)
_decimal_re = re.compile(r"(?<![\d.,])(\d{1,6}[.,]\d{2})(?![\d.,]?\d)")
_any_number_re = re.compile(rf"(?<![\w.,]){SYMBOL}?\s*{NUMBER}")


# -----------------------------
# Number parsing
# -----------------------------
def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse "55.08", "55,08", "1,000", "1.000,50", "$1,200.00".
    Accepts both comma and dot as decimal separator.
    """
    if not raw:
        return None
    tok = re.sub(r"[^\d.,]", "", raw)
    if not tok or not any(ch.isdigit() for ch in tok):
        return None

    if "," in tok and "." in tok:
        decimal_sep = "," if tok.rfind(",") > tok.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        tok = tok.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif "," in tok or "." in tok:
        sep = "," if "," in tok else "."
        parts = tok.split(sep)
        if len(parts) > 2 or (len(parts[-1]) == 3 and parts[0] not in ("", "0")):
            tok = tok.replace(sep, "")
        else:
            tok = tok.replace(sep, ".")

    try:
        return Decimal(tok)
    except InvalidOperation:
        return None


def to_money(value) -> Optional[Decimal]:
    """Round to currency minor units; non-positive values are rejected."""
    if value is None:
        return None
    try:
        amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


def extract_amounts(text: str) -> List[Decimal]:
    amounts = []
    for m in _any_number_re.finditer(text or ""):
        val = parse_amount(m.group(1))
        if val is not None:
            amounts.append(val)
    return amounts


def has_amount(text: Optional[str]) -> bool:
    return any(a > 0 for a in extract_amounts(text or ""))


# -----------------------------
# Amount rules
# -----------------------------
def _first_group(pattern: re.Pattern, text: str) -> Optional[Decimal]:
    m = pattern.search(text)
    return to_money(parse_amount(m.group(1))) if m else None


def _largest_decimal(text: str) -> Optional[Decimal]:
    candidates = [parse_amount(m.group(1)) for m in _decimal_re.finditer(text)]
    candidates = [c for c in candidates if c is not None and c > 0]
    return to_money(max(candidates)) if candidates else None


def _first_number(text: str) -> Optional[Decimal]:
    for amount in extract_amounts(text):
        money = to_money(amount)
        if money is not None:
            return money
    return None


AMOUNT_RULES: Tuple[Rule, ...] = (
    Rule("paid_adjacent", lambda text: _first_group(_paid_adjacent_re, text)),
    Rule("for_it", lambda text: _first_group(_for_it_re, text)),
    Rule("largest_decimal", _largest_decimal),
    Rule("first_number", _first_number),
)


def find_amount(text: Optional[str]) -> Optional[Decimal]:
    if not text:
        return None
    match = first_match(AMOUNT_RULES, text)
    return match.value if match else None


def resolve_amount(user_text: Optional[str], reply_text: Optional[str] = None) -> Optional[Decimal]:
    """
    The user's own number wins over anything the model echoed back,
    the reply is only consulted when the user gave no number at all.
    """
    return find_amount(user_text) or find_amount(reply_text)


# -----------------------------
# Currency
# -----------------------------
# Prefixed dollar symbols first so "c$" is not read as "$"
CURRENCY_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("CAD", ("canadian dollar", "cad", "c$")),
    ("AUD", ("australian dollar", "aud", "a$")),
    ("HKD", ("hong kong dollar", "hkd", "hk$")),
    ("NZD", ("new zealand dollar", "nzd", "nz$")),
    ("SGD", ("singapore dollar", "sgd", "s$")),
    ("MXN", ("peso", "pesos", "mxn", "mx$")),
    ("BRL", ("reais", "brl", "r$")),
    ("EUR", ("euro", "euros", "eur", "€")),
    ("GBP", ("pound", "pounds", "gbp", "sterling", "£")),
    ("JPY", ("yen", "jpy", "¥")),
    ("CNY", ("yuan", "cny", "renminbi")),
    ("INR", ("rupee", "rupees", "inr", "₹")),
    ("CHF", ("swiss franc", "francs", "chf")),
    ("ZAR", ("rand", "zar")),
    ("USD", ("dollar", "dollars", "usd", "bucks", "$")),
)

CURRENCY_SYMBOLS = {
    "USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥", "CAD": "C$", "AUD": "A$",
    "CHF": "CHF ", "CNY": "¥", "INR": "₹", "BRL": "R$", "MXN": "MX$",
    "SGD": "S$", "HKD": "HK$", "NZD": "NZ$", "ZAR": "R",
}


def _token_in(token: str, lowered: str) -> bool:
    if token[-1].isalpha():
        return re.search(rf"(?<![a-z]){re.escape(token)}(?![a-z])", lowered) is not None
    if token == "$":
        return re.search(r"(?<![a-z])\$", lowered) is not None
    return token in lowered


def detect_currency(text: Optional[str]) -> Optional[str]:
    lowered = (text or "").lower()
    if not lowered:
        return None
    for code, tokens in CURRENCY_PATTERNS:
        if any(_token_in(token, lowered) for token in tokens):
            return code
    return None


def currency_symbol(code: Optional[str]) -> str:
    return CURRENCY_SYMBOLS.get((code or "").upper(), "$")


def format_money(amount: Decimal, currency: Optional[str]) -> str:
    return f"{currency_symbol(currency)}{amount:,.2f}"


# -----------------------------
# Dates
# -----------------------------
_NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "twelve": 12,
}

_in_period_re = re.compile(
    r"\bin\s+(\d{1,3}|a|an|one|two|three|four|five|six|seven|eight|nine|ten|twelve)\s+"
    r"(day|week|month|year)s?\b",
    re.IGNORECASE,
)
_by_date_re = re.compile(
    r"\b(?:by|until|before)\s+(?:the\s+end\s+of\s+)?(?:next\s+)?"
    r"(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{2,4}"
    r"|[a-z]+\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}|[a-z]+\s+\d{4}|[a-z]+|\d{4})\b",
    re.IGNORECASE,
)

# Trailing date clauses, stripped from titles and descriptions
TRAILING_DATE_RE = re.compile(
    r"\s+(?:(?:by|until|before)\s+(?:the\s+end\s+of\s+)?(?:next\s+)?[\w/,-]+(?:\s+\d{1,2}(?:st|nd|rd|th)?,?)?(?:\s+\d{4})?"
    r"|in\s+(?:\d{1,3}|a|an|one|two|three|four|five|six|seven|eight|nine|ten|twelve)\s+(?:day|week|month|year)s?"
    r"|next\s+(?:week|month|year|summer|winter|spring)|this\s+(?:year|month|summer))\s*$",
    re.IGNORECASE,
)


def parse_target_date(text: Optional[str], today: Optional[date] = None) -> Optional[date]:
    """Deadline from "in 6 months", "by December", "by 2027-05-01"."""
    if not text:
        return None
    today = today or date.today()

    m = _in_period_re.search(text)
    if m:
        raw, unit = m.group(1).lower(), m.group(2).lower()
        count = int(raw) if raw.isdigit() else _NUMBER_WORDS[raw]
        return today + relativedelta(**{f"{unit}s": count})

    m = _by_date_re.search(text)
    if not m:
        return None
    clause = m.group(1)
    default = datetime(today.year, 12, 31)
    try:
        parsed = date_parser.parse(clause, default=default).date()
    except (ValueError, OverflowError):
        return None
    if parsed < today and not re.search(r"\d{4}", clause):
        parsed = parsed + relativedelta(years=1)
    return parsed if parsed >= today else None


def resolve_timestamp(text: Optional[str], now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now().astimezone()
    lowered = (text or "").lower()
    if "day before yesterday" in lowered:
        return now - timedelta(days=2)
    if re.search(r"\byesterday\b", lowered):
        return now - timedelta(days=1)
    return now
