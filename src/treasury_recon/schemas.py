"""Input payloads for statement import."""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class StatementLineInput(BaseModel):
    """One already-structured statement line."""

    line_number: int = Field(gt=0)
    date: dt.date
    value_date: Optional[dt.date] = None
    description: str = Field(default="", max_length=500)
    reference: Optional[str] = Field(default=None, max_length=100)
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    balance: Optional[Decimal] = None

    @model_validator(mode="after")
    def _debit_or_credit(self) -> "StatementLineInput":
        if self.debit > 0 and self.credit > 0:
            raise ValueError(
                f"Line {self.line_number} has both a debit and a credit amount"
            )
        if self.debit == 0 and self.credit == 0:
            raise ValueError(f"Line {self.line_number} has no amount")
        return self


class StatementImport(BaseModel):
    """A bank statement with its lines, ready to be stored."""

    bank_account_id: int = Field(gt=0)
    company_id: int = Field(gt=0)
    period: Optional[str] = Field(default=None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    opening_balance: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")
    tolerance_amount: Optional[Decimal] = Field(default=None, ge=0)
    tolerance_days: Optional[int] = Field(default=None, ge=0)
    items: list[StatementLineInput] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def _unique_line_numbers(cls, items: list[StatementLineInput]) -> list[StatementLineInput]:
        numbers = [line.line_number for line in items]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Line numbers must be unique within a statement")
        return items
