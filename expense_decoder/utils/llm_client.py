"""
LLM Client
Thin wrapper around an OpenAI-compatible chat-completions endpoint
"""
import logging
from typing import Optional

import requests

from expense_decoder.core.config import settings
from expense_decoder.core.exceptions import InsightGenerationError, PaymentRequired, RateLimitExceeded

logger = logging.getLogger(__name__)


class MalformedCompletionError(Exception):
    """The gateway answered 2xx but the body has no readable message content."""


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.LLM_API_KEY
        self.api_url = api_url or settings.LLM_API_URL
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """
        Send a system + user message pair and return the assistant's text.
        Exactly one attempt is made; failures are raised to the caller.
        """
        if not self.configured:
            raise InsightGenerationError("LLM_API_KEY is not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"AI gateway request failed: {str(e)}")
            raise InsightGenerationError(f"AI gateway request failed: {str(e)}")

        if not response.ok:
            logger.error(f"AI gateway error: {response.status_code} {response.text}")
            if response.status_code == 429:
                raise RateLimitExceeded()
            if response.status_code == 402:
                raise PaymentRequired()
            raise InsightGenerationError(f"AI gateway error: {response.status_code}")

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedCompletionError(f"Unreadable completion body: {str(e)}")
