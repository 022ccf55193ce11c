import asyncio
import logging
import re
from typing import Any, List, Optional, Tuple

import aiohttp

from venue_engine.models import (
    GeoPoint,
    OutcomeKind,
    ProviderHit,
    ProviderName,
    ProviderOutcome,
)
from venue_engine.resolution.retry import RetryController

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[_\-\s]+")


def normalize_categories(labels: List[Any]) -> List[str]:
    """Lowercase provider labels, '_'/'-' to spaces, drop blanks and repeats."""
    out: List[str] = []
    for label in labels or []:
        if not isinstance(label, str):
            continue
        cleaned = _SEPARATORS.sub(" ", label.lower()).strip()
        if cleaned and cleaned not in out:
            out.append(cleaned)
    return out


class ProviderAdapter:
    """
    One upstream "nearest place" source.

    Subclasses implement `_send` (a single HTTP exchange) and `parse`
    (payload -> ProviderHit). Everything else, including the retry policy and
    the hard timeout around the whole retried path, lives here so every
    provider degrades the same way: to an absent hit, never an exception.
    """

    name: ProviderName

    def __init__(
        self,
        api_key: str,
        radius_m: float = 80.0,
        timeout_s: float = 4.5,
        retry: Optional[RetryController] = None,
    ):
        self.api_key = api_key
        self.radius_m = radius_m
        self.timeout_s = timeout_s
        self.retry = retry or RetryController()

    async def _send(self, point: GeoPoint) -> Tuple[int, Optional[dict]]:
        """Perform one request. Returns (status, json body or None)."""
        raise NotImplementedError

    def parse(self, data: dict, point: GeoPoint) -> Optional[ProviderHit]:
        raise NotImplementedError

    def _client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout_s)

    async def fetch_once(self, point: GeoPoint) -> ProviderOutcome:
        try:
            status, data = await self._send(point)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"{self.name.value} request failed: {e!r}")
            return ProviderOutcome(provider=self.name, kind=OutcomeKind.UNAVAILABLE)

        if status == 429:
            return ProviderOutcome(
                provider=self.name, kind=OutcomeKind.RATE_LIMITED, status=status
            )
        if status != 200:
            logger.warning(f"{self.name.value} responded with HTTP {status}")
            return ProviderOutcome(
                provider=self.name, kind=OutcomeKind.UNAVAILABLE, status=status
            )

        try:
            hit = self.parse(data or {}, point)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"{self.name.value} returned a malformed payload: {e!r}")
            return ProviderOutcome(
                provider=self.name, kind=OutcomeKind.UNAVAILABLE, status=status
            )

        kind = OutcomeKind.HIT if hit is not None else OutcomeKind.NO_MATCH
        return ProviderOutcome(provider=self.name, kind=kind, hit=hit, status=status)

    async def query_outcome(self, point: GeoPoint) -> ProviderOutcome:
        try:
            return await asyncio.wait_for(
                self.retry.run(lambda: self.fetch_once(point)), timeout=self.timeout_s
            )
        except asyncio.TimeoutError:
            logger.info(f"{self.name.value} timed out after {self.timeout_s}s")
            return ProviderOutcome(provider=self.name, kind=OutcomeKind.TIMEOUT)

    async def query(self, point: GeoPoint) -> Optional[ProviderHit]:
        outcome = await self.query_outcome(point)
        return outcome.hit
