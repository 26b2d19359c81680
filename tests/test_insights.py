import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from expense_decoder.core.exceptions import InsightGenerationError, PaymentRequired, RateLimitExceeded
from expense_decoder.db import dynamo
from expense_decoder.utils.analyzer import ExpenseAnalyzer
from expense_decoder.utils.insights import (
    FALLBACK_INSIGHTS,
    ONBOARDING_INSIGHTS,
    SYSTEM_PROMPT,
    InsightRequester,
    InsightStage,
    build_prompt,
    current_month_label,
    parse_insights,
    strip_code_fence,
)
from expense_decoder.utils.llm_client import MalformedCompletionError

sample_expenses = [
    {"expense_id": "e1", "category": "Food", "amount": 20, "date": "2025-11-01"},
    {"expense_id": "e2", "category": "Food", "amount": 30, "date": "2025-11-01"},
    {"expense_id": "e3", "category": "Transport", "amount": 15, "date": "2025-11-03"},
]

model_insights = [
    {"type": "trend", "message": "Food is your biggest category.", "tips": ["Cook twice a week", "Plan meals"]},
    {"type": "warning", "message": "Several purchases landed on one day."},
    {"type": "tip", "message": "Transport spend is steady.", "tips": ["Try a monthly pass", "Walk short trips"]},
]


class FakeLLM:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def complete(self, system_prompt, user_prompt, temperature):
        self.calls.append((system_prompt, user_prompt, temperature))
        if self.error is not None:
            raise self.error
        return self.content


class FakeStore:
    def __init__(self, expenses=None, save_ok=True):
        self.expenses = expenses or []
        self.save_ok = save_ok
        self.saved = []

    def fetch(self, user_id):
        return list(self.expenses)

    def save(self, user_id, month_year, insights):
        self.saved.append((user_id, month_year, insights))
        return self.save_ok


def make_requester(store, llm):
    return InsightRequester(
        fetch_expenses=store.fetch,
        save_insights=store.save,
        llm_client=llm,
        clock=lambda: datetime(2025, 11, 15, 9, 30, tzinfo=timezone.utc),
    )


def test_empty_history_returns_onboarding_without_model_call():
    store = FakeStore()
    llm = FakeLLM(content="[]")
    result = make_requester(store, llm).generate("user-1")

    assert result.insights == ONBOARDING_INSIGHTS
    assert result.stage == InsightStage.NO_DATA
    assert llm.calls == []
    assert store.saved == []


def test_model_insights_are_parsed_and_persisted():
    store = FakeStore(sample_expenses)
    llm = FakeLLM(content=json.dumps(model_insights))
    result = make_requester(store, llm).generate("user-1")

    assert result.stage == InsightStage.PARSED
    assert result.insights == model_insights
    assert result.persisted is True
    assert store.saved == [("user-1", "2025-11", model_insights)]


def test_model_is_called_with_fixed_system_prompt_and_temperature():
    store = FakeStore(sample_expenses)
    llm = FakeLLM(content=json.dumps(model_insights))
    make_requester(store, llm).generate("user-1")

    system_prompt, user_prompt, temperature = llm.calls[0]
    assert system_prompt == SYSTEM_PROMPT
    assert temperature == 0.7
    assert "Total Expenses: 3" in user_prompt
    assert "Total Spent: $65.00" in user_prompt
    assert "Average Expense: $21.67" in user_prompt
    assert 'Categories: {"Food": 50.0, "Transport": 15.0}' in user_prompt
    assert "Max expenses in one day: 2" in user_prompt


def test_code_fenced_reply_is_parsed():
    store = FakeStore(sample_expenses)
    llm = FakeLLM(content="```json\n" + json.dumps(model_insights) + "\n```")
    result = make_requester(store, llm).generate("user-1")
    assert result.stage == InsightStage.PARSED
    assert result.insights == model_insights


@pytest.mark.parametrize(
    "content",
    [
        "Here are some thoughts about your spending",
        '[{"type": "tip", "message": "unterminated"',
        '{"type": "tip", "message": "not a list"}',
        '[{"type": "tip"}]',
        "[]",
        None,
    ],
)
def test_unparseable_reply_falls_back(content):
    store = FakeStore(sample_expenses)
    result = make_requester(store, FakeLLM(content=content)).generate("user-1")

    assert result.stage == InsightStage.PARSE_FALLBACK
    assert result.insights == FALLBACK_INSIGHTS
    assert len(result.insights[0]["tips"]) == 3
    assert store.saved[0][2] == FALLBACK_INSIGHTS


def test_unreadable_completion_body_falls_back():
    store = FakeStore(sample_expenses)
    llm = FakeLLM(error=MalformedCompletionError("no choices"))
    result = make_requester(store, llm).generate("user-1")
    assert result.stage == InsightStage.PARSE_FALLBACK
    assert result.insights == FALLBACK_INSIGHTS


@pytest.mark.parametrize("error", [RateLimitExceeded(), PaymentRequired(), InsightGenerationError("AI gateway error: 500")])
def test_gateway_errors_propagate_without_persisting(error):
    store = FakeStore(sample_expenses)
    llm = FakeLLM(error=error)
    with pytest.raises(type(error)):
        make_requester(store, llm).generate("user-1")
    assert len(llm.calls) == 1
    assert store.saved == []


def test_rate_limit_and_payment_are_distinct_conditions():
    assert RateLimitExceeded().status_code == 429
    assert PaymentRequired().status_code == 402
    assert not isinstance(RateLimitExceeded(), InsightGenerationError)
    assert not isinstance(PaymentRequired(), InsightGenerationError)


def test_persist_failure_still_returns_insights():
    store = FakeStore(sample_expenses, save_ok=False)
    result = make_requester(store, FakeLLM(content=json.dumps(model_insights))).generate("user-1")
    assert result.insights == model_insights
    assert result.persisted is False


def test_save_that_raises_still_returns_insights():
    def unreachable_save(user_id, month_year, insights):
        raise EndpointConnectionError(endpoint_url="https://dynamodb.test")

    store = FakeStore(sample_expenses)
    requester = InsightRequester(
        fetch_expenses=store.fetch,
        save_insights=unreachable_save,
        llm_client=FakeLLM(content=json.dumps(model_insights)),
    )
    result = requester.generate("user-1")
    assert result.insights == model_insights
    assert result.persisted is False


def test_unreachable_insights_table_still_returns_insights(monkeypatch):
    table = MagicMock()
    table.put_item.side_effect = EndpointConnectionError(endpoint_url="https://dynamodb.test")
    monkeypatch.setattr(dynamo, "insights_table", table)

    store = FakeStore(sample_expenses)
    requester = InsightRequester(
        fetch_expenses=store.fetch,
        save_insights=dynamo.put_insights,
        llm_client=FakeLLM(content=json.dumps(model_insights)),
    )
    result = requester.generate("u1")
    assert result.insights == model_insights
    assert result.persisted is False
    assert table.put_item.call_count == 1


def test_storage_read_failure_is_a_generation_error():
    def broken_fetch(user_id):
        raise ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, "Query")

    requester = InsightRequester(
        fetch_expenses=broken_fetch,
        save_insights=lambda *args: True,
        llm_client=FakeLLM(content="[]"),
    )
    with pytest.raises(InsightGenerationError, match="no table"):
        requester.generate("user-1")


def test_malformed_stored_amount_is_a_generation_error():
    store = FakeStore([{"expense_id": "x", "category": "Food", "amount": "twelve", "date": "2025-11-01"}])
    llm = FakeLLM(content="[]")
    with pytest.raises(InsightGenerationError, match="malformed amount"):
        make_requester(store, llm).generate("user-1")
    assert llm.calls == []


def test_prompt_contains_busy_day_count():
    busy_day = [{"category": "Snacks", "amount": 4.5, "date": "2025-11-07"} for _ in range(7)]
    summary = ExpenseAnalyzer().summarize(busy_day)
    prompt = build_prompt(summary)
    assert "Max expenses in one day: 7" in prompt
    assert "if max expenses in day > 5" in prompt


def test_fallbacks_are_not_shared_between_calls():
    store = FakeStore()
    first = make_requester(store, FakeLLM()).generate("user-1")
    first.insights[0]["tips"].append("mutated")
    second = make_requester(store, FakeLLM()).generate("user-1")
    assert second.insights == ONBOARDING_INSIGHTS
    assert "mutated" not in ONBOARDING_INSIGHTS[0]["tips"]


def test_strip_code_fence():
    assert strip_code_fence("```json\n[1]\n```") == "[1]"
    assert strip_code_fence("```[1]```") == "[1]"
    assert strip_code_fence("  [1]  ") == "[1]"


def test_parse_insights_drops_missing_tips():
    parsed = parse_insights('[{"type": "trend", "message": "Steady month"}]')
    assert parsed == [{"type": "trend", "message": "Steady month"}]


def test_current_month_label():
    assert current_month_label(datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc)) == "2024-02"
