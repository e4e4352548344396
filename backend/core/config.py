from typing import List
from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class AppSettings(BaseSettings):
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    DEFAULT_TARGET: float = 75.0
    LOGIN_URL: str = "https://asiet.etlab.app/user/login"
    REQUEST_TIMEOUT_SECONDS: int = 30
    MAX_CONCURRENT_SCRAPES: int = 2
    ERROR_SNAPSHOT_PATH: str = "error_page.html"
    ALLOWED_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = [".env", ".env.example"]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


def load_app_settings() -> AppSettings:
    try:
        return AppSettings()
    except Exception as error:
        raise ConfigurationError(f"Failed to load application settings: {error}")


# load config on module import
try:
    settings = load_app_settings()
except ConfigurationError as e:
    # Re-raise with additional context for easier debugging
    raise ConfigurationError(f"Failed to initialize configuration: {e}") from e
