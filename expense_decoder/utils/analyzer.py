from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional


class MalformedExpenseError(ValueError):
    """Raised when a stored expense amount cannot be read as a decimal."""


@dataclass
class ExpenseSummary:
    """Derived totals for one user's expenses. Never persisted."""

    expense_count: int
    category_totals: Dict[str, Decimal] = field(default_factory=dict)
    total_spent: Decimal = Decimal("0")
    average_expense: Optional[Decimal] = None
    expenses_per_day: Dict[str, int] = field(default_factory=dict)
    max_expenses_in_one_day: int = 0
    impulsive_day: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expense_count": self.expense_count,
            "category_totals": {cat: float(total) for cat, total in self.category_totals.items()},
            "total_spent": float(self.total_spent),
            "average_expense": float(self.average_expense) if self.average_expense is not None else None,
            "expenses_per_day": dict(self.expenses_per_day),
            "max_expenses_in_one_day": self.max_expenses_in_one_day,
            "impulsive_day": self.impulsive_day,
        }


class ExpenseAnalyzer:
    """
    Pure aggregation helpers over a list of expense dicts (as read from storage).
    Shared by the insight pipeline and the dashboard routes so both see the same numbers.
    """

    def __init__(self, impulsive_day_threshold: int = 5) -> None:
        self._impulsive_day_threshold = impulsive_day_threshold

    @property
    def impulsive_day_threshold(self) -> int:
        return self._impulsive_day_threshold

    @staticmethod
    def _amount(expense: Dict[str, Any]) -> Decimal:
        raw = expense.get("amount")
        try:
            amount = Decimal(str(raw))
        except (InvalidOperation, ValueError):
            raise MalformedExpenseError(
                f"Expense {expense.get('expense_id', '?')} has a malformed amount: {raw!r}"
            )
        if not amount.is_finite():
            raise MalformedExpenseError(
                f"Expense {expense.get('expense_id', '?')} has a malformed amount: {raw!r}"
            )
        return amount

    def category_totals(self, expenses: List[Dict[str, Any]]) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for exp in expenses:
            totals[exp["category"]] += self._amount(exp)
        return dict(totals)

    def total_spent(self, expenses: List[Dict[str, Any]]) -> Decimal:
        return sum(self.category_totals(expenses).values(), Decimal("0"))

    def average_expense(self, expenses: List[Dict[str, Any]]) -> Decimal:
        if not expenses:
            raise ValueError("Cannot average an empty expense list")
        return self.total_spent(expenses) / len(expenses)

    def expenses_per_day(self, expenses: List[Dict[str, Any]]) -> Dict[str, int]:
        return dict(Counter(str(exp["date"]) for exp in expenses))

    def max_expenses_in_one_day(self, expenses: List[Dict[str, Any]]) -> int:
        per_day = self.expenses_per_day(expenses)
        return max(per_day.values()) if per_day else 0

    def has_impulsive_day(self, expenses: List[Dict[str, Any]]) -> bool:
        return self.max_expenses_in_one_day(expenses) > self._impulsive_day_threshold

    def category_breakdown(self, expenses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Chart-ready slices: one entry per category with its total and its share
        of overall spending (percentage, one decimal), largest first.
        """
        totals = self.category_totals(expenses)
        grand_total = sum(totals.values(), Decimal("0"))
        breakdown = []
        for category, total in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0])):
            share = float(round(total / grand_total * 100, 1)) if grand_total else 0.0
            breakdown.append({"name": category, "value": float(total), "share": share})
        return breakdown

    def summarize(self, expenses: List[Dict[str, Any]]) -> ExpenseSummary:
        if not expenses:
            return ExpenseSummary(expense_count=0)

        category_totals = self.category_totals(expenses)
        total_spent = sum(category_totals.values(), Decimal("0"))
        per_day = self.expenses_per_day(expenses)
        max_per_day = max(per_day.values())

        return ExpenseSummary(
            expense_count=len(expenses),
            category_totals=category_totals,
            total_spent=total_spent,
            average_expense=total_spent / len(expenses),
            expenses_per_day=per_day,
            max_expenses_in_one_day=max_per_day,
            impulsive_day=max_per_day > self._impulsive_day_threshold,
        )
