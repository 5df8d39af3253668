# models/records.py
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from core.categories import ALL_CATEGORY_NAMES, is_income_only, is_variable_cost
from core.intent import TargetType, TransactionKind
from services.amounts import CENT


class TransactionRecord(BaseModel):
    kind: TransactionKind
    amount: Decimal = Field(..., gt=0, description="Positive amount in currency units")
    category: str = Field(..., description="Canonical taxonomy name")
    description: str = Field(..., min_length=1, max_length=100)
    timestamp: datetime
    currency: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return v.quantize(CENT)

    @field_validator("category")
    @classmethod
    def category_in_taxonomy(cls, v: str) -> str:
        if v not in ALL_CATEGORY_NAMES:
            raise ValueError(f"Unknown category '{v}'")
        return v

    @model_validator(mode="after")
    def no_income_category_on_spending(self):
        if self.kind is not TransactionKind.INCOME and is_income_only(self.category):
            raise ValueError(
                f"{self.kind.value} records cannot use income category '{self.category}'"
            )
        return self


class TargetRecord(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    target_amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    target_type: TargetType
    target_date: Optional[date] = None
    category: Optional[str] = None
    description: Optional[str] = None

    @field_validator("target_amount")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return v.quantize(CENT)

    @model_validator(mode="after")
    def category_matches_type(self):
        if self.target_type is TargetType.BUDGET:
            if not self.category or not is_variable_cost(self.category):
                raise ValueError("Spending limits need a variable-cost category")
        elif self.category is not None:
            raise ValueError("Savings targets do not carry a category")
        return self


class WriteResult(BaseModel):
    ok: bool
    verified: bool
    id: Optional[str] = None
    record_type: Optional[Literal["transaction", "savings", "budget"]] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.ok and self.verified
