# FILE: services/financial_summary.py
"""
Financial snapshot for premium prompts: totals, this month's figures,
top spending categories and the owner's existing goals and limits.
"""

import logging
from asyncio import wait_for
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple

from configurations.config import DEFAULT_CURRENCY, PERSISTENCE_TIMEOUT
from services.amounts import CENT, format_money

# -----------------------------
# Logging Setup
# -----------------------------
logger = logging.getLogger("financial_summary")
logger.setLevel(logging.INFO)
if not logger.handlers:
    fh = logging.FileHandler("financial_summary.log")
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh.setFormatter(formatter)
    logger.addHandler(fh)

ZERO = Decimal("0.00")
LOOKBACK_DAYS = 180
MAX_ROWS = 500


@dataclass(frozen=True)
class FinancialSummary:
    currency: str
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    monthly_income: Decimal = ZERO
    monthly_expenses: Decimal = ZERO
    top_categories: Tuple[Tuple[str, Decimal], ...] = ()
    monthly_categories: Tuple[Tuple[str, Decimal], ...] = ()
    recent: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = field(default_factory=tuple)
    transaction_count: int = 0

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def monthly_balance(self) -> Decimal:
        return self.monthly_income - self.monthly_expenses

    def render(self) -> str:
        def money(value: Decimal) -> str:
            return format_money(value, self.currency)

        lines = [
            "FINANCIAL SNAPSHOT:",
            f"- Total Income: {money(self.total_income)}",
            f"- Total Expenses: {money(self.total_expenses)}",
            f"- Net Balance: {money(self.net_balance)}",
            f"- Monthly Income: {money(self.monthly_income)}",
            f"- Monthly Expenses: {money(self.monthly_expenses)}",
            f"- Monthly Balance: {money(self.monthly_balance)}",
            f"- Transactions on record: {self.transaction_count}",
        ]
        if self.top_categories:
            lines.append("Top Spending Categories:")
            lines += [f"{i}. {name}: {money(total)}" for i, (name, total) in enumerate(self.top_categories, 1)]
        if self.monthly_categories:
            lines.append("This Month by Category:")
            lines += [f"- {name}: {money(total)}" for name, total in self.monthly_categories]
        if self.recent:
            lines.append("Recent Transactions:")
            lines += [f"- {entry}" for entry in self.recent]
        if self.targets:
            lines.append("Existing Goals and Limits:")
            lines += [f"- {entry}" for entry in self.targets]
        return "\n".join(lines)


def _amount(row) -> Decimal:
    try:
        return Decimal(str(getattr(row, "amount", 0) or 0)).quantize(CENT)
    except ArithmeticError:
        return ZERO


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _ranked(totals) -> Tuple[Tuple[str, Decimal], ...]:
    return tuple(sorted(totals.items(), key=lambda kv: (-kv[1], kv[0])))


def summarize(rows: Iterable[Any], now: Optional[datetime] = None, currency: str = DEFAULT_CURRENCY,
              targets: Iterable[Any] = ()) -> FinancialSummary:
    """Pure aggregation over transaction rows (anything with kind/amount/category/occurredAt)."""
    now = _as_aware(now) or datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    rows = list(rows)
    total_income = total_expenses = monthly_income = monthly_expenses = ZERO
    by_category = defaultdict(lambda: ZERO)
    month_by_category = defaultdict(lambda: ZERO)

    for row in rows:
        amount = _amount(row)
        kind = getattr(row, "kind", None)
        occurred = _as_aware(getattr(row, "occurredAt", None))
        this_month = occurred is not None and occurred >= month_start
        category = getattr(row, "category", None) or "Other"
        if kind == "income":
            total_income += amount
            if this_month:
                monthly_income += amount
        elif kind == "expense":
            total_expenses += amount
            by_category[category] += amount
            if this_month:
                monthly_expenses += amount
                month_by_category[category] += amount

    recent = []
    dated = sorted(rows, key=lambda r: _as_aware(getattr(r, "occurredAt", None)) or now, reverse=True)
    for row in dated[:5]:
        recent.append(
            f"{getattr(row, 'kind', '')}: {format_money(_amount(row), currency)} - "
            f"{getattr(row, 'description', '')} ({getattr(row, 'category', '')})"
        )

    target_lines = []
    for target in targets:
        amount = Decimal(str(getattr(target, "targetAmount", 0) or 0)).quantize(CENT)
        label = "limit" if getattr(target, "targetType", None) == "budget" else "goal"
        target_lines.append(f"{getattr(target, 'title', '')} ({label}): {format_money(amount, currency)}")

    return FinancialSummary(
        currency=currency,
        total_income=total_income,
        total_expenses=total_expenses,
        monthly_income=monthly_income,
        monthly_expenses=monthly_expenses,
        top_categories=_ranked(by_category)[:5],
        monthly_categories=_ranked(month_by_category),
        recent=tuple(recent),
        targets=tuple(target_lines),
        transaction_count=len(rows),
    )


# -----------------------------
# Loaders
# -----------------------------
async def load_profile_currency(db, owner_id: str, hint: Optional[str] = None,
                                timeout: float = PERSISTENCE_TIMEOUT) -> str:
    """Client hint, then the profile preference, then the configured default."""
    if hint:
        return hint
    if db is None:
        return DEFAULT_CURRENCY
    try:
        profile = await wait_for(db.profile.find_first(where={"ownerId": owner_id}), timeout=timeout)
    except Exception as e:
        logger.warning(f"[PROFILE] user_id={owner_id} currency lookup failed: {e}")
        return DEFAULT_CURRENCY
    currency = getattr(profile, "currency", None) if profile else None
    return (currency or DEFAULT_CURRENCY).upper()


async def load_summary(db, owner_id: str, currency: str, now: Optional[datetime] = None,
                       timeout: float = PERSISTENCE_TIMEOUT) -> Optional[FinancialSummary]:
    """None when the datastore cannot answer; the prompt then goes without figures."""
    if db is None:
        return None
    now = _as_aware(now) or datetime.now(timezone.utc)
    since = now - timedelta(days=LOOKBACK_DAYS)
    try:
        rows: List[Any] = await wait_for(
            db.txn.find_many(
                where={"ownerId": owner_id, "occurredAt": {"gte": since}},
                order={"occurredAt": "desc"},
                take=MAX_ROWS,
            ),
            timeout=timeout,
        )
        targets: List[Any] = await wait_for(
            db.target.find_many(where={"ownerId": owner_id}),
            timeout=timeout,
        )
    except Exception as e:
        logger.warning(f"[SUMMARY] user_id={owner_id} load failed: {e}")
        return None
    return summarize(rows, now=now, currency=currency, targets=targets)
