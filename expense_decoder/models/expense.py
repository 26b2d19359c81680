import datetime as dt
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer


def new_expense_id(expense_date: dt.date) -> str:
    # Sort key starts with the ISO date so a descending query is newest-first
    return f"{expense_date.isoformat()}-{uuid4().hex}"


def _utcnow_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


class ExpenseCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    category: str = Field(min_length=1, max_length=50)
    description: Optional[str] = Field(default="", max_length=200)
    date: dt.date = Field(default_factory=dt.date.today)
    is_impulsive: bool = False


class ExpenseInDB(BaseModel):
    user_id: str
    expense_id: str
    amount: Decimal
    category: str
    description: Optional[str] = ""
    date: dt.date
    is_impulsive: bool = False
    created_at: str = Field(default_factory=_utcnow_iso)

    @classmethod
    def from_create(cls, user_id: str, expense: ExpenseCreate) -> "ExpenseInDB":
        return cls(
            user_id=user_id,
            expense_id=new_expense_id(expense.date),
            **expense.model_dump(),
        )

    def to_item(self) -> dict:
        """Plain dict ready for DynamoDB (dates as ISO strings, amount kept as Decimal)."""
        item = self.model_dump()
        item["date"] = self.date.isoformat()
        return item


class ExpensePublic(BaseModel):
    expense_id: str
    amount: Decimal
    category: str
    description: Optional[str] = ""
    date: dt.date
    is_impulsive: bool = False
    created_at: Optional[str] = None

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, amount: Decimal) -> float:
        return float(amount)
