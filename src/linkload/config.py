from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LINKLOAD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Loads imports through the engine even when the host supports them natively.
    force_polyfill: bool = False

    # Seconds before an HTTP fetch gives up. `None` waits forever.
    fetch_timeout: float | None = None

    log_file: str = "/tmp/linkload.log"
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
