from typing import Dict

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException

from expense_decoder.core.config import settings
from expense_decoder.core.security import get_current_user_id
from expense_decoder.db import dynamo
from expense_decoder.utils.analyzer import ExpenseAnalyzer, MalformedExpenseError

router = APIRouter()
expense_analyzer = ExpenseAnalyzer(settings.IMPULSIVE_DAY_THRESHOLD)


@router.get("/breakdown")
def category_breakdown(user_id: str = Depends(get_current_user_id)) -> Dict:
    """
    Per-category slices for the spending chart, computed over the full history.
    """
    try:
        expenses = dynamo.get_all_expenses(user_id)
    except (BotoCoreError, ClientError) as e:
        raise HTTPException(status_code=500, detail=f"Failed to load expenses: {str(e)}")

    try:
        summary = expense_analyzer.summarize(expenses)
        categories = expense_analyzer.category_breakdown(expenses)
    except MalformedExpenseError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "categories": categories,
        "total_spent": float(summary.total_spent),
        "expense_count": summary.expense_count,
    }
