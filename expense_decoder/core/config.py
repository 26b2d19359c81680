from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App settings
    PROJECT_NAME: str = "ExpenseDecoder"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_TABLE_EXPENSES: str = Field(default="expense-decoder-expenses")
    DYNAMO_TABLE_INSIGHTS: str = Field(default="expense-decoder-ai-insights")

    # Tokens are issued by the managed auth provider, we only verify them
    JWT_SECRET: str = Field(default="change-me-in-production")
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = Field(default=None)

    # Text-generation gateway (OpenAI-compatible chat completions)
    LLM_API_KEY: Optional[str] = Field(default=None)
    LLM_API_URL: str = Field(default="https://ai.gateway.lovable.dev/v1/chat/completions")
    LLM_MODEL: str = Field(default="google/gemini-2.5-flash")
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: Optional[float] = Field(default=None)

    # Analytics
    RECENT_EXPENSES_LIMIT: int = 20
    IMPULSIVE_DAY_THRESHOLD: int = 5


settings = Settings()
