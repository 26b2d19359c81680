from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import TypeAdapter, ValidationError

from expense_decoder.core.exceptions import InsightGenerationError
from expense_decoder.models.insight import Insight
from expense_decoder.utils.analyzer import ExpenseAnalyzer, ExpenseSummary, MalformedExpenseError
from expense_decoder.utils.llm_client import LLMClient, MalformedCompletionError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful financial coach. Always return valid JSON."
DEFAULT_TEMPERATURE = 0.7

ONBOARDING_INSIGHTS: List[Dict[str, Any]] = [
    {
        "type": "tip",
        "message": "Start adding expenses to get personalized insights!",
        "tips": [
            "Track all your purchases, big and small",
            "Be honest about what you spend",
            "Review your expenses weekly",
        ],
    }
]

FALLBACK_INSIGHTS: List[Dict[str, Any]] = [
    {
        "type": "tip",
        "message": "Your spending data has been recorded!",
        "tips": [
            "Review your largest expenses this month",
            "Look for patterns in your daily spending",
            "Set a budget for your top spending category",
        ],
    }
]

_CODE_FENCE = re.compile(r"```json\n?|\n?```")
_insight_list = TypeAdapter(List[Insight])


class InsightStage(str, Enum):
    NO_DATA = "no_data"
    PARSED = "parsed"
    PARSE_FALLBACK = "parse_fallback"


@dataclass
class InsightResult:
    insights: List[Dict[str, Any]]
    stage: InsightStage
    persisted: bool = False


def current_month_label(now: Optional[datetime] = None) -> str:
    """UTC month label used to key insight snapshots, e.g. '2025-11'."""
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m")


def build_prompt(summary: ExpenseSummary, impulsive_day_threshold: int = 5) -> str:
    category_totals = {cat: float(total) for cat, total in summary.category_totals.items()}
    return f"""You are ExpenseDecoder, a friendly AI money coach. Analyze these spending patterns and provide insights:

Total Expenses: {summary.expense_count}
Total Spent: ${summary.total_spent:.2f}
Average Expense: ${summary.average_expense:.2f}
Categories: {json.dumps(category_totals)}
Max expenses in one day: {summary.max_expenses_in_one_day}

Provide exactly 3-4 insights as a JSON array. Each insight should have:
- type: "trend", "warning", or "tip"
- message: A friendly, non-judgmental observation (max 100 characters)
- tips: Array of 2-3 actionable tips (optional, each max 80 characters)

Focus on:
1. Spending patterns and trends
2. Potential emotional or impulsive spending (if max expenses in day > {impulsive_day_threshold})
3. Category analysis
4. Positive reinforcement and actionable advice

Be motivating, data-driven, and specific. End with clear tips for next month.

Return ONLY valid JSON array, no other text."""


def strip_code_fence(content: str) -> str:
    return _CODE_FENCE.sub("", content).strip()


def parse_insights(content: Any) -> Optional[List[Dict[str, Any]]]:
    """
    Parse model output into insight dicts.
    Returns None when the text is not a JSON array of insight objects.
    """
    if not isinstance(content, str):
        return None
    try:
        raw = json.loads(strip_code_fence(content))
        insights = _insight_list.validate_python(raw)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Failed to parse AI response: {str(e)}")
        return None
    if not insights:
        return None
    return [insight.model_dump(exclude_none=True) for insight in insights]


class InsightRequester:
    """
    Turns a user's expense history into a stored insight snapshot.

    Stages: no data -> model call -> parsed | parse fallback -> persist attempt.
    Storage and the model client are injected so every branch can be driven
    in isolation.
    """

    def __init__(
        self,
        fetch_expenses: Callable[[str], List[Dict[str, Any]]],
        save_insights: Callable[[str, str, List[Dict[str, Any]]], bool],
        llm_client: LLMClient,
        analyzer: Optional[ExpenseAnalyzer] = None,
        temperature: float = DEFAULT_TEMPERATURE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._fetch_expenses = fetch_expenses
        self._save_insights = save_insights
        self._llm = llm_client
        self._analyzer = analyzer or ExpenseAnalyzer()
        self._temperature = temperature
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, user_id: str) -> InsightResult:
        expenses = self._load_expenses(user_id)
        if not expenses:
            logger.info(f"No expenses for user {user_id}, returning onboarding insights")
            return InsightResult(insights=_copy(ONBOARDING_INSIGHTS), stage=InsightStage.NO_DATA)

        try:
            summary = self._analyzer.summarize(expenses)
        except MalformedExpenseError as e:
            logger.error(f"Cannot summarize expenses for user {user_id}: {str(e)}")
            raise InsightGenerationError(str(e))
        prompt = build_prompt(summary, self._analyzer.impulsive_day_threshold)
        logger.info(
            f"Requesting insights for user {user_id}: {summary.expense_count} expenses, "
            f"max {summary.max_expenses_in_one_day} in one day"
        )

        result = self._call_model(prompt)
        result.persisted = self._persist(user_id, result.insights)
        return result

    def _load_expenses(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            return self._fetch_expenses(user_id)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to load expenses for user {user_id}: {str(e)}")
            raise InsightGenerationError(f"Failed to load expenses: {str(e)}")

    def _call_model(self, prompt: str) -> InsightResult:
        # RateLimitExceeded / PaymentRequired / InsightGenerationError propagate untouched
        try:
            content = self._llm.complete(SYSTEM_PROMPT, prompt, self._temperature)
        except MalformedCompletionError as e:
            logger.warning(f"AI gateway returned an unreadable body: {str(e)}")
            return InsightResult(insights=_copy(FALLBACK_INSIGHTS), stage=InsightStage.PARSE_FALLBACK)

        insights = parse_insights(content)
        if insights is None:
            return InsightResult(insights=_copy(FALLBACK_INSIGHTS), stage=InsightStage.PARSE_FALLBACK)
        return InsightResult(insights=insights, stage=InsightStage.PARSED)

    def _persist(self, user_id: str, insights: List[Dict[str, Any]]) -> bool:
        month_year = current_month_label(self._clock())
        try:
            saved = self._save_insights(user_id, month_year, insights)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Saving insights raised for user {user_id}: {str(e)}")
            saved = False
        if not saved:
            logger.error(f"Failed to save insights for user {user_id} ({month_year})")
        return bool(saved)


def _copy(insights: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{**item, "tips": list(item["tips"])} for item in insights]
