import os
from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    HOLDS_DB_USER: str         = os.getenv("HOLDS_DB_USER", "")
    HOLDS_DB_PASSWORD: str     = os.getenv("HOLDS_DB_PASSWORD", "")
    HOLDS_DB_NAME: str         = os.getenv("HOLDS_DB_NAME", "")
    HOLDS_DB_HOST: str         = os.getenv("HOLDS_DB_HOST", "")
    HOLDS_DB_PORT: int         = int(os.getenv("HOLDS_DB_PORT", "5432"))
    DATABASE_URL: str | None   = None
    DB_ECHO: bool              = False

    RABBIT_USER: str           = os.getenv("RABBIT_USER", "")
    RABBIT_PASSWORD: str       = os.getenv("RABBIT_PASSWORD", "")
    RABBIT_HOST: str           = os.getenv("RABBIT_HOST", "")
    RABBIT_PORT: int           = int(os.getenv("RABBIT_PORT", "5672"))
    RABBIT_CONNECT_ATTEMPTS: int = 5
    RABBIT_CONNECT_DELAY: int  = 2

    HOLD_EVENTS_EXCHANGE: str        = "hold.events"
    TRANSACTION_EVENTS_EXCHANGE: str = "transaction.events"
    INBOX_PREFETCH_COUNT: int  = int(os.getenv("INBOX_PREFETCH_COUNT", "10"))

    HOLD_FRAUD_LIMIT: Decimal  = Decimal("10000.00")
    HOLD_EXPIRY_DAYS: int      = 7
    HOLD_EXPIRY_CHECK_INTERVAL: int = 300

    OUTBOX_POLL_INTERVAL: int  = int(os.getenv("OUTBOX_POLL_INTERVAL", "1"))
    OUTBOX_BATCH_SIZE: int     = 10

    LOG_LEVEL: str             = "INFO"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://"
            f"{self.HOLDS_DB_USER}:"
            f"{self.HOLDS_DB_PASSWORD}"
            f"@{self.HOLDS_DB_HOST}:"
            f"{self.HOLDS_DB_PORT}/"
            f"{self.HOLDS_DB_NAME}"
        )

    @property
    def rabbit_url(self) -> str:
        return f"amqp://{self.RABBIT_USER}:{self.RABBIT_PASSWORD}@{self.RABBIT_HOST}:{self.RABBIT_PORT}/"

settings = Settings()
