"""
Error types raised by the insight pipeline.

Each error carries the HTTP status and a short machine-readable code so the
API layer can render it as ``{"error": ..., "code": ...}`` and clients can
tell a rate limit apart from an exhausted quota or a generic failure.
"""


class InsightError(Exception):
    status_code = 500
    code = "generation_failed"
    default_message = "Failed to generate insights"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class RateLimitExceeded(InsightError):
    status_code = 429
    code = "rate_limited"
    default_message = "Rate limit exceeded. Please try again later."


class PaymentRequired(InsightError):
    status_code = 402
    code = "payment_required"
    default_message = "Payment required. Please add credits to continue."


class InsightGenerationError(InsightError):
    pass
