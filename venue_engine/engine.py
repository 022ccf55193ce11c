"""
Venue resolution: coordinate -> VenueClassification, or None.

One VenueResolutionEngine owns its cache, in-flight map and rate-limit
buckets. Nothing here is module-global; build one engine per process and
hand it to whoever needs it.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from venue_engine.core.config import EngineConfig
from venue_engine.core.errors import ConfigurationError
from venue_engine.models import (
    GeoPoint,
    OutcomeKind,
    ProviderName,
    ProviderOutcome,
    VenueClassification,
)
from venue_engine.providers.base import ProviderAdapter
from venue_engine.providers.foursquare import FoursquareAdapter
from venue_engine.providers.google import GooglePlacesAdapter
from venue_engine.resolution.cache import ResultCache
from venue_engine.resolution.coalescer import RequestCoalescer
from venue_engine.resolution.fusion import FusionResolver
from venue_engine.resolution.grid import GridKeyIndexer
from venue_engine.resolution.rate_limiter import RateLimiter
from venue_engine.resolution.retry import RetryController

logger = logging.getLogger(__name__)

ADAPTER_TYPES = {
    ProviderName.FOURSQUARE: FoursquareAdapter,
    ProviderName.GOOGLE: GooglePlacesAdapter,
}


def build_retry_controller(config: EngineConfig) -> RetryController:
    return RetryController(
        max_attempts=config.retry_max_attempts,
        base_delay_s=config.retry_base_delay_s,
        max_jitter_s=config.retry_max_jitter_s,
        rate_limit_pause_s=config.rate_limit_pause_s,
    )


def build_adapters(config: EngineConfig) -> List[ProviderAdapter]:
    """Adapters for every provider in the order list that has a credential."""
    retry = build_retry_controller(config)
    adapters = []
    for name in config.provider_order:
        provider_config = config.providers.get(name)
        if provider_config is None or not provider_config.enabled:
            continue
        adapters.append(
            ADAPTER_TYPES[name](
                provider_config.api_key,
                radius_m=provider_config.radius_m,
                timeout_s=config.provider_timeout_s,
                retry=retry,
            )
        )
    return adapters


class VenueResolutionEngine:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        adapters: Optional[List[ProviderAdapter]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResultCache] = None,
        indexer: Optional[GridKeyIndexer] = None,
    ):
        self.config = config or EngineConfig()
        if self.config.provider_timeout_s <= 0:
            raise ConfigurationError("provider_timeout_s must be positive")

        self.adapters = build_adapters(self.config) if adapters is None else list(adapters)
        self.indexer = indexer or GridKeyIndexer()
        self.cache = cache or ResultCache(
            max_entries=self.config.cache_max_entries,
            ttl_seconds=self.config.cache_ttl_s,
        )
        self.coalescer: RequestCoalescer[Optional[VenueClassification]] = RequestCoalescer()
        self.fusion = FusionResolver(
            preference=self.config.provider_order,
            use_rating_tiebreak=self.config.use_rating_tiebreak,
        )
        self.rate_limiter = rate_limiter or RateLimiter()
        if rate_limiter is None:
            for adapter in self.adapters:
                provider_config = self.config.providers.get(adapter.name)
                if provider_config is None:
                    continue
                self.rate_limiter.configure(
                    adapter.name.value,
                    provider_config.rate_limit_per_minute,
                    provider_config.refill_per_second,
                )

        logger.info(
            f"Venue engine ready with providers: "
            f"{[a.name.value for a in self.adapters] or 'none'}"
        )

    async def classify(self, point: Optional[GeoPoint]) -> Optional[VenueClassification]:
        if point is None:
            return None
        key = self.indexer.key_for(point)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        return await self.coalescer.resolve(key, lambda: self._resolve(key, point))

    async def _resolve(self, key: str, point: GeoPoint) -> Optional[VenueClassification]:
        outcomes = await self.gather_outcomes(point)
        venue = self.fusion.resolve(o.hit for o in outcomes)

        summary = ", ".join(f"{o.provider.value}={o.kind.value}" for o in outcomes)
        logger.debug(f"Resolved {key}: [{summary or 'no providers'}] -> {venue}")

        if venue is not None:
            self.cache.put(key, venue)
        return venue

    async def gather_outcomes(self, point: GeoPoint) -> List[ProviderOutcome]:
        """Run every permitted provider concurrently and settle all of them."""
        outcomes: Dict[ProviderName, ProviderOutcome] = {}
        launched = []
        for adapter in self.adapters:
            if not self.rate_limiter.try_acquire(adapter.name.value):
                outcomes[adapter.name] = ProviderOutcome(
                    provider=adapter.name, kind=OutcomeKind.SKIPPED
                )
                continue
            launched.append(adapter)

        results = await asyncio.gather(
            *(a.query_outcome(point) for a in launched), return_exceptions=True
        )
        for adapter, result in zip(launched, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    f"{adapter.name.value} adapter raised unexpectedly",
                    exc_info=result,
                )
                result = ProviderOutcome(
                    provider=adapter.name, kind=OutcomeKind.UNAVAILABLE
                )
            outcomes[adapter.name] = result

        return [outcomes[a.name] for a in self.adapters]
