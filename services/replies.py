# FILE: services/replies.py
"""
Fixed user-facing texts and success-marker detection.
"""

import re
from typing import Iterable, List

from core.intent import TargetType
from models.records import TargetRecord, TransactionRecord
from services.amounts import format_money

SAVE_FAILED_REPLY = (
    "Sorry, I couldn't store that in your records just now, so nothing has changed. "
    "Please send it again in a moment."
)

FALLBACK_PAYWALL_REPLY = (
    "That's a Premium feature. Setting goals and spending limits and getting a full "
    "budget analysis need an active Premium subscription. You can still add income "
    "and expenses on the free plan."
)

# Anything that reads as "this was stored"
SUCCESS_MARKER_RE = re.compile(
    r"✅|✔|\b(?:saved|recorded|logged|added|noted|created|tracked|set up|i've set|i have set)\b",
    re.IGNORECASE,
)


def has_success_marker(text: str) -> bool:
    return bool(text) and SUCCESS_MARKER_RE.search(text) is not None


def transaction_confirmation(record: TransactionRecord) -> str:
    amount = format_money(record.amount, record.currency)
    return f"✅ Saved {record.kind.value}: {record.description}, {amount} ({record.category})."


def target_confirmation(record: TargetRecord) -> str:
    amount = format_money(record.target_amount, record.currency)
    if record.target_type is TargetType.BUDGET:
        return f"✅ Spending limit saved: {record.category}, {amount} per month."
    due = f" by {record.target_date.isoformat()}" if record.target_date else ""
    return f"✅ Savings goal saved: {record.title}, {amount}{due}."


def confirmation_lines(records: Iterable) -> List[str]:
    lines = []
    for record in records:
        if isinstance(record, TransactionRecord):
            lines.append(transaction_confirmation(record))
        elif isinstance(record, TargetRecord):
            lines.append(target_confirmation(record))
    return lines
