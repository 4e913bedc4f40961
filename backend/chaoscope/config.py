"""Application configuration."""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "chaoscope"
    APP_VERSION: str = "0.3.0"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Proxy
    TARGET_URL: str = "http://localhost:3000"
    PROXY_HOST: str = "0.0.0.0"
    PROXY_PORT: int = 8080
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0
    SHUTDOWN_TIMEOUT_SECONDS: int = 5

    # Output
    OUTPUT_DIR: str = "chaos-cli-test"

    # Reporting
    BRIEF_TOP_N: int = 5

    class Config:
        env_file = ".env"
        env_prefix = "CHAOSCOPE_"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
