# FILE: services/prompt_builder.py
"""
Builds the single system instruction sent with every completion call.

Free users only ever get the two add-record patterns; premium users get all
six plus their financial snapshot. When this turn already stored a record,
the instruction says so, so the model confirms instead of asking again.
"""

from typing import Optional, Sequence

from core.categories import CostGroup, names_in
from core.intent import Entitlement, Intent
from models.records import TargetRecord, TransactionRecord
from services.amounts import currency_symbol
from services.financial_summary import FinancialSummary
from services.replies import confirmation_lines

PERSONA = (
    "You are Anita, a warm and insightful personal finance assistant. You speak naturally, "
    "like a trusted friend who happens to be great with money. Keep answers short unless the "
    "user asks for analysis. Never invent transactions, balances or figures."
)

_RECORD_RULES = (
    "When the user has given both the amount and what it was for, confirm in one sentence such as "
    "\"I've added your expense of <amount> for <description> (<Category>)\". If the amount or what "
    "it was for is missing, ask one short question instead of guessing and do not claim anything "
    "was saved."
)


def _add_income_pattern() -> str:
    income = ", ".join(sorted(names_in(CostGroup.INCOME)))
    return (
        f"PATTERN {Intent.ADD_INCOME.value}: the user reports money they received. Identify the "
        f"amount and the source. Income categories: {income}; anything else is Other."
    )


def _add_expense_pattern() -> str:
    variable = ", ".join(sorted(names_in(CostGroup.VARIABLE)))
    fixed = ", ".join(sorted(names_in(CostGroup.FIXED)))
    return (
        f"PATTERN {Intent.ADD_EXPENSE.value}: the user reports money they spent. Identify the "
        f"amount and what it was for, and use one of these categories exactly as written. "
        f"Variable costs: {variable}. Fixed costs: {fixed}. Never use an income category for an expense."
    )


def _identity_pattern() -> str:
    return (
        f"PATTERN {Intent.EXPLAIN_IDENTITY.value}: greetings or questions about who you are. "
        "Introduce yourself in two sentences and say what you can help with."
    )


def _set_target_pattern(symbol: str) -> str:
    variable = ", ".join(sorted(names_in(CostGroup.VARIABLE)))
    return (
        f"PATTERN {Intent.SET_TARGET.value}: savings goals and monthly spending limits. For a goal, "
        f"confirm with \"I've set a savings goal for <title> of {symbol}<amount>\". For a limit, "
        f"confirm with \"I've set a limit for <Category> at {symbol}<amount>\". Limits only apply to "
        f"these variable-cost categories: {variable}. Never propose limits on rent, mortgage, "
        "utilities, debt or other fixed costs."
    )


def _analyze_budget_pattern(symbol: str) -> str:
    return (
        f"PATTERN {Intent.ANALYZE_BUDGET.value}: when the user asks for analytics or a budget "
        "review, answer in exactly three sections:\n"
        "## Quick Summary\n"
        "Two or three sentences on income, spending and balance.\n"
        "## Ranked Recommendations\n"
        f"1. **<Category> — target {symbol}<amount>** (save {symbol}<savings>, <percent>% reduction)\n"
        "   - Current spending and one reason. Highest savings first, variable costs only.\n"
        "## Next Step\n"
        "One clear action. Offer to set the recommended targets as limits."
    )


def _explain_spending_pattern() -> str:
    return (
        f"PATTERN {Intent.EXPLAIN_SPENDING.value}: questions about where the money goes. Use the "
        "snapshot figures, name the biggest categories and notice patterns."
    )


def _free_rules() -> str:
    return (
        "This user is on the free plan. You can ONLY help with recording income and expenses and "
        "with explaining who you are. Do not set goals or limits, do not rank categories and do "
        "not analyse the budget; if asked, say briefly that it needs Premium."
    )


def saved_directive(records: Sequence) -> str:
    lines = confirmation_lines(records)
    if not lines:
        return ""
    joined = "\n".join(f"- {line}" for line in lines)
    return (
        "ALREADY SAVED: the following was stored and verified in the user's records during this "
        f"turn. Confirm it briefly and do NOT ask for it again or offer to add it:\n{joined}"
    )


def build_instruction(
    entitlement: Entitlement,
    currency: str,
    summary: Optional[FinancialSummary] = None,
    saved: Sequence = (),
) -> str:
    symbol = currency_symbol(currency)
    sections = [PERSONA, f"The user's currency is {currency} ({symbol.strip()}).", _RECORD_RULES]

    if entitlement.is_premium:
        sections += [
            _identity_pattern(),
            _add_income_pattern(),
            _add_expense_pattern(),
            _set_target_pattern(symbol),
            _analyze_budget_pattern(symbol),
            _explain_spending_pattern(),
        ]
        if summary is not None:
            sections.append(summary.render())
        else:
            sections.append("No financial data could be loaded for this turn; do not quote figures.")
    else:
        sections += [_add_income_pattern(), _add_expense_pattern(), _free_rules()]

    directive = saved_directive(
        [r for r in saved if isinstance(r, (TransactionRecord, TargetRecord))]
    )
    if directive:
        sections.append(directive)
    return "\n\n".join(sections)
