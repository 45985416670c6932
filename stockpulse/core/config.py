# stockpulse/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_NAME: str = "StockPulse"
    LOG_LEVEL: str = "INFO"

    # Market data (Finnhub by default, yfinance as keyless alternative)
    QUOTE_PROVIDER: str = "finnhub"
    FINNHUB_API_KEY: str = ""
    FINNHUB_BASE_URL: str = "https://finnhub.io/api/v1"
    HTTP_TIMEOUT_S: float = 10.0

    # News
    NEWS_LOOKBACK_DAYS: int = 5
    NEWS_CACHE_TTL_S: int = 300
    DIGEST_ARTICLE_LIMIT: int = 6
    GENERAL_NEWS_CAP: int = 20

    # Reasoning service (OpenAI-compatible chat completions)
    REASONING_API_URL: str = "https://api.groq.com/openai/v1/chat/completions"
    REASONING_API_KEY: str = ""
    REASONING_MODEL: str = "llama-3.1-8b-instant"
    REASONING_TIMEOUT_S: float = 30.0
    DIGEST_SENTIMENT_ENABLED: bool = True
    DIGEST_SENTIMENT_MAX_SYMBOLS: int = 3

    # Mail
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_TIMEOUT_S: float = 15.0

    # Dispatch
    DISPATCH_TIMEOUT_S: float = 60.0
    DISPATCH_CONCURRENCY: int = 10

    # Scheduling
    SCHEDULER_ENABLED: bool = True
    ALERT_INTERVAL_S: int = 300
    DIGEST_CRON: str = "0 12 * * *"

    EVENTS_SECRET: str | None = None
    DATABASE_URL: str = "sqlite:///./stockpulse.db"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
