import logging
from typing import List

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException, Query, status

from expense_decoder.core.config import settings
from expense_decoder.core.security import get_current_user_id
from expense_decoder.db import dynamo
from expense_decoder.models.expense import ExpenseCreate, ExpenseInDB, ExpensePublic

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ExpensePublic, status_code=status.HTTP_201_CREATED)
def create_expense(expense: ExpenseCreate, user_id: str = Depends(get_current_user_id)):
    expense_db = ExpenseInDB.from_create(user_id, expense)
    success = dynamo.put_expense(expense_db.to_item())
    if not success:
        raise HTTPException(status_code=500, detail="Failed to save expense")
    logger.info(f"Expense {expense_db.expense_id} recorded for user {user_id}")
    return ExpensePublic(**expense_db.model_dump())


@router.get("/", response_model=List[ExpensePublic])
def list_recent_expenses(
    limit: int = Query(default=settings.RECENT_EXPENSES_LIMIT, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
):
    """
    Most recent expenses, newest date first.
    """
    try:
        items = dynamo.get_recent_expenses(user_id, limit)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Failed to list expenses for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load expenses")
    return [ExpensePublic(**item) for item in items]


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(expense_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        deleted = dynamo.delete_expense(user_id, expense_id)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Failed to delete expense {expense_id} for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete expense")
    if not deleted:
        raise HTTPException(status_code=404, detail="Expense not found")
    return None
