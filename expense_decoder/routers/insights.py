"""
Insights Router
Generates AI spending insights and serves the latest snapshot for the current month
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from expense_decoder.core.config import settings
from expense_decoder.core.security import get_current_user_id
from expense_decoder.db import dynamo
from expense_decoder.models.insight import InsightRequest, InsightResponse, LatestInsights
from expense_decoder.utils.analyzer import ExpenseAnalyzer
from expense_decoder.utils.insights import InsightRequester, current_month_label
from expense_decoder.utils.llm_client import LLMClient

router = APIRouter()
logger = logging.getLogger(__name__)
llm_client = LLMClient()


def get_insight_requester() -> InsightRequester:
    return InsightRequester(
        fetch_expenses=dynamo.get_all_expenses,
        save_insights=dynamo.put_insights,
        llm_client=llm_client,
        analyzer=ExpenseAnalyzer(settings.IMPULSIVE_DAY_THRESHOLD),
        temperature=settings.LLM_TEMPERATURE,
    )


@router.post("/analyze", response_model=InsightResponse)
def analyze_expenses(
    request: InsightRequest,
    user_id: str = Depends(get_current_user_id),
    requester: InsightRequester = Depends(get_insight_requester),
):
    """
    Regenerate insights from the user's full expense history.
    Rate-limit, quota and generation failures are rendered by the InsightError handler.
    """
    if request.userId != user_id:
        logger.error(f"User ID mismatch: {user_id} vs {request.userId}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User ID does not match authentication")

    result = requester.generate(user_id)
    logger.info(f"Insights for user {user_id} finished at stage {result.stage.value} (persisted={result.persisted})")
    return {"insights": result.insights}


@router.get("/latest", response_model=LatestInsights)
def latest_insights(user_id: str = Depends(get_current_user_id)):
    month_year = current_month_label()
    snapshot = dynamo.get_latest_insights(user_id, month_year)
    if not snapshot:
        return LatestInsights(month_year=month_year)
    return LatestInsights(
        month_year=month_year,
        insights=snapshot.get("insights") or [],
        created_at=snapshot.get("created_at"),
    )
