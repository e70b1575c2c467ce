from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional
from functools import lru_cache


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Transaction Ledger"
    app_version: str = "1.0.0"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Ledger settings
    decimal_places: int = 4
    allow_disputes_on_locked: bool = True
    # "credit" returns a resolved withdrawal dispute to available funds,
    # "release" drops the provisional hold again
    withdrawal_resolve: Literal["credit", "release"] = "credit"

    # Aggregation settings
    parallel: bool = True
    max_workers: Optional[int] = None  # None lets the executor pick

    # Feature flags
    enable_detailed_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    log_level: str = "DEBUG"
    log_format: str = "text"
    enable_detailed_logging: bool = True


class ProductionSettings(Settings):
    log_level: str = "INFO"
    enable_detailed_logging: bool = False


class TestingSettings(Settings):
    log_level: str = "WARNING"  # Reduce noise in tests
    max_workers: Optional[int] = 4


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()
