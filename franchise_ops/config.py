from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres settings
    DATABASE_URL: str = "postgresql://localhost:5432/franchise_ops"

    # Redis settings (run locks)
    REDIS_URL: str = "redis://localhost:6379/0"
    RUN_LOCKS_ENABLED: bool = True
    RUN_LOCK_TTL_SECONDS: int = 300

    # Tenant scope for the action engine
    ORGANIZATION_ID: str = "9a0d8a37-e9cf-4592-8b7d-e3762c243b0d"

    # Bearer secret shared with the scheduler
    CRON_SECRET: str | None = None

    # =================================================================
    # ACTION ENGINE SETTINGS
    # =================================================================
    ACTION_ITEM_EXPIRY_DAYS: int = 7
    KPI_HISTORY_DAYS: int = 30
    RECENT_WINDOW_DAYS: int = 7
    ACTION_ENGINE_INTERVAL_MINUTES: int = 60

    # =================================================================
    # AUTOMATION SETTINGS
    # =================================================================
    AUTOMATION_BATCH_SIZE: int = 50
    AUTOMATION_MOCK_MODE: bool = True
    AUTOMATION_INTERVAL_SECONDS: int = 60

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def cron_secret_configured(self) -> bool:
        return bool(self.CRON_SECRET and self.CRON_SECRET.strip())

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": min(self.DB_POOL_MIN_SIZE, 2),
                    "max_size": min(self.DB_POOL_MAX_SIZE, 5),
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
