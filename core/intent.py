# core/intent.py
from enum import Enum


class Intent(str, Enum):
    """
    The six conversation patterns a turn can belong to.
    Derived fresh from the full message history every turn, never stored.
    """

    ADD_INCOME = "AddIncome"
    ADD_EXPENSE = "AddExpense"
    SET_TARGET = "SetTarget"
    ANALYZE_BUDGET = "AnalyzeBudget"
    EXPLAIN_IDENTITY = "ExplainIdentity"
    EXPLAIN_SPENDING = "ExplainSpending"

    # -----------------------------
    # Semantic helpers (SAFE)
    # -----------------------------
    def is_paid(self) -> bool:
        return self not in FREE_INTENTS

    def records_transaction(self) -> bool:
        return self in {Intent.ADD_INCOME, Intent.ADD_EXPENSE}


FREE_INTENTS = frozenset(
    {Intent.ADD_INCOME, Intent.ADD_EXPENSE, Intent.EXPLAIN_IDENTITY}
)


class Entitlement(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

    @property
    def is_premium(self) -> bool:
        return self is Entitlement.PREMIUM


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TargetType(str, Enum):
    SAVINGS = "savings"
    BUDGET = "budget"
