"""Runtime settings for the checkout service, read from the environment / .env."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./checkout.db"

    # Remote functions that initiate the gateway charge
    FUNCTIONS_URL: str = "http://localhost:54321/functions/v1"
    FUNCTIONS_API_KEY: str = ""
    FUNCTIONS_TIMEOUT_SECONDS: float = 30.0

    # Delay before a successful attempt returns to a clean state
    SUCCESS_RESET_SECONDS: float = 5.0
    # How long a finished attempt stays readable before it is forgotten
    ATTEMPT_RETENTION_SECONDS: float = 900.0

    LOG_LEVEL: str = "INFO"
    SEED_DEMO_DATA: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
