import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from venue_engine.core.errors import ConfigurationError
from venue_engine.models import ProviderName

load_dotenv()


class ProviderConfig(BaseModel):
    api_key: Optional[str] = None
    rate_limit_per_minute: int = 60
    # Defaults to rate_limit_per_minute / 60 when unset
    refill_per_second: Optional[float] = None
    radius_m: float = 80.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class EngineConfig(BaseModel):
    """Everything the engine needs, passed explicitly at construction."""

    provider_order: List[ProviderName] = Field(
        default_factory=lambda: [ProviderName.FOURSQUARE, ProviderName.GOOGLE]
    )
    providers: Dict[ProviderName, ProviderConfig] = Field(default_factory=dict)
    provider_timeout_s: float = 4.5
    cache_ttl_s: float = 300.0
    cache_max_entries: int = 2048
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 0.25
    retry_max_jitter_s: float = 0.1
    rate_limit_pause_s: float = 0.8
    use_rating_tiebreak: bool = False

    @field_validator("provider_order")
    @classmethod
    def unique_provider_order(cls, order: List[ProviderName]) -> List[ProviderName]:
        if len(set(order)) != len(order):
            raise ValueError(f"provider_order lists a provider twice: {order}")
        return order


def _parse_order(raw: str) -> List[ProviderName]:
    order = []
    for part in raw.split(","):
        part = part.strip().lower()
        if part and part not in order:
            order.append(part)
    try:
        return [ProviderName(p) for p in order]
    except ValueError as exc:
        raise ConfigurationError(f"Unknown provider in PLACES_ORDER: {raw!r}") from exc


class Settings:
    # Logging
    LOG_DIR = os.getenv("LOG_DIR", "")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    APP_LOG_FILENAME = os.getenv("APP_LOG_FILENAME", "venue_engine.log")

    # Providers
    FSQ_API_KEY = os.getenv("FSQ_API_KEY")
    GOOGLE_PLACES_API_KEY = os.getenv("GOOGLE_PLACES_API_KEY")
    PLACES_ORDER = os.getenv("PLACES_ORDER", "fsq,google")
    FSQ_RATE_LIMIT_PER_MIN = int(os.getenv("FSQ_RATE_LIMIT_PER_MIN", "50"))
    GOOGLE_RATE_LIMIT_PER_MIN = int(os.getenv("GOOGLE_RATE_LIMIT_PER_MIN", "60"))
    PROVIDER_RADIUS_M = float(os.getenv("PROVIDER_RADIUS_M", "80"))
    PROVIDER_TIMEOUT_S = float(os.getenv("PROVIDER_TIMEOUT_S", "4.5"))

    # Retry
    RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    RETRY_BASE_DELAY_S = float(os.getenv("RETRY_BASE_DELAY_S", "0.25"))
    RETRY_MAX_JITTER_S = float(os.getenv("RETRY_MAX_JITTER_S", "0.1"))
    RATE_LIMIT_PAUSE_S = float(os.getenv("RATE_LIMIT_PAUSE_S", "0.8"))

    # Cache & Fusion
    CACHE_TTL_S = float(os.getenv("CACHE_TTL_S", "300"))
    CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "2048"))
    USE_RATING_TIEBREAK = os.getenv("USE_RATING_TIEBREAK", "false").lower() in (
        "1",
        "true",
        "yes",
    )

    # Service
    SERVICE_HOST = os.getenv("SERVICE_HOST", "127.0.0.1")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    CLIENT_CACHE_MAX_AGE_S = int(os.getenv("CLIENT_CACHE_MAX_AGE_S", "300"))

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            provider_order=_parse_order(self.PLACES_ORDER),
            providers={
                ProviderName.FOURSQUARE: ProviderConfig(
                    api_key=self.FSQ_API_KEY,
                    rate_limit_per_minute=self.FSQ_RATE_LIMIT_PER_MIN,
                    radius_m=self.PROVIDER_RADIUS_M,
                ),
                ProviderName.GOOGLE: ProviderConfig(
                    api_key=self.GOOGLE_PLACES_API_KEY,
                    rate_limit_per_minute=self.GOOGLE_RATE_LIMIT_PER_MIN,
                    radius_m=self.PROVIDER_RADIUS_M,
                ),
            },
            provider_timeout_s=self.PROVIDER_TIMEOUT_S,
            cache_ttl_s=self.CACHE_TTL_S,
            cache_max_entries=self.CACHE_MAX_ENTRIES,
            retry_max_attempts=self.RETRY_MAX_ATTEMPTS,
            retry_base_delay_s=self.RETRY_BASE_DELAY_S,
            retry_max_jitter_s=self.RETRY_MAX_JITTER_S,
            rate_limit_pause_s=self.RATE_LIMIT_PAUSE_S,
            use_rating_tiebreak=self.USE_RATING_TIEBREAK,
        )


settings = Settings()
