from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from exchange.credentials import split_csv


class Settings(BaseSettings):
    # Single credential set
    OKX_API_KEY: str = ""
    OKX_SECRET_KEY: str = ""
    OKX_PASSPHRASE: str = ""

    # Comma-separated sub-account sets; index position is the credIdx
    OKX_API_KEYS: str = ""
    OKX_SECRET_KEYS: str = ""
    OKX_PASSPHRASES: str = ""

    OKX_BASE_URL: str = "https://www.okx.com"
    OKX_FALLBACK_HOSTS: str = "https://www.okx.com,https://aws.okx.com"
    OKX_SIMULATED: bool = False
    # Extra bot ids folded into the portfolio view
    OKX_ALGO_IDS: str = ""

    HTTP_TIMEOUT_SEC: float = 10.0
    RATE_LIMIT_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_BASE_DELAY_SEC: float = 0.3
    PACING_DELAY_SEC: float = 0.12
    POSITION_PROBE_DELAY_SEC: float = 0.06

    BOT_DATA_TTL_SEC: float = 300.0
    DEFAULT_BASELINE_EQUITY: float = 1000.0
    FILLS_FALLBACK: bool = False

    API_PREFIX: str = ""
    CORS_ORIGINS: str = "*"
    CURRENCY: str = "USDT"

    # Pydantic v2 config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def hosts(self) -> List[str]:
        """Primary host first, then fallbacks; duplicates are dropped downstream."""
        return [self.OKX_BASE_URL] + split_csv(self.OKX_FALLBACK_HOSTS)

    @property
    def extra_algo_ids(self) -> List[str]:
        return split_csv(self.OKX_ALGO_IDS)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
