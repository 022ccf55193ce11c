from typing import Optional, Tuple

import aiohttp

from venue_engine.models import GeoPoint, ProviderHit, ProviderName
from venue_engine.providers.base import ProviderAdapter, normalize_categories

FSQ_SEARCH_URL = "https://api.foursquare.com/v3/places/search"


class FoursquareAdapter(ProviderAdapter):
    name = ProviderName.FOURSQUARE

    def __init__(self, api_key: str, base_url: str = FSQ_SEARCH_URL, **kwargs):
        super().__init__(api_key, **kwargs)
        self.base_url = base_url

    def build_params(self, point: GeoPoint) -> dict:
        return {
            "ll": f"{point.lat},{point.lng}",
            "radius": str(int(self.radius_m)),
            "limit": "1",
            "sort": "DISTANCE",
        }

    async def _send(self, point: GeoPoint) -> Tuple[int, Optional[dict]]:
        headers = {"Accept": "application/json", "Authorization": self.api_key}
        async with aiohttp.ClientSession(timeout=self._client_timeout()) as session:
            async with session.get(
                self.base_url, params=self.build_params(point), headers=headers
            ) as resp:
                if resp.status != 200:
                    return resp.status, None
                return resp.status, await resp.json(content_type=None)

    def parse(self, data: dict, point: GeoPoint) -> Optional[ProviderHit]:
        results = data.get("results") or []
        if not results:
            return None
        place = results[0]

        labels = [c.get("name") for c in place.get("categories") or []]
        distance = place.get("distance")
        return ProviderHit(
            provider=self.name,
            name=place.get("name") or None,
            categories=normalize_categories(labels),
            distance_m=float(distance) if distance is not None else None,
        )
