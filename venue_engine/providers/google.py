from typing import Optional, Tuple

import aiohttp
from geopy.distance import geodesic

from venue_engine.models import GeoPoint, ProviderHit, ProviderName
from venue_engine.providers.base import ProviderAdapter, normalize_categories

GOOGLE_NEARBY_URL = "https://places.googleapis.com/v1/places:searchNearby"
FIELD_MASK = "places.displayName,places.types,places.location,places.rating"


class GooglePlacesAdapter(ProviderAdapter):
    name = ProviderName.GOOGLE

    def __init__(self, api_key: str, base_url: str = GOOGLE_NEARBY_URL, **kwargs):
        super().__init__(api_key, **kwargs)
        self.base_url = base_url

    def build_body(self, point: GeoPoint) -> dict:
        return {
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": point.lat, "longitude": point.lng},
                    "radius": self.radius_m,
                }
            },
            "maxResultCount": 1,
            "rankPreference": "DISTANCE",
            "languageCode": "en",
        }

    async def _send(self, point: GeoPoint) -> Tuple[int, Optional[dict]]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": FIELD_MASK,
        }
        async with aiohttp.ClientSession(timeout=self._client_timeout()) as session:
            async with session.post(
                self.base_url, json=self.build_body(point), headers=headers
            ) as resp:
                if resp.status != 200:
                    return resp.status, None
                return resp.status, await resp.json(content_type=None)

    def parse(self, data: dict, point: GeoPoint) -> Optional[ProviderHit]:
        places = data.get("places") or []
        if not places:
            return None
        place = places[0]

        # Google reports no distance; derive it from the returned location
        distance_m = None
        location = place.get("location") or {}
        if location.get("latitude") is not None and location.get("longitude") is not None:
            distance_m = geodesic(
                (point.lat, point.lng),
                (float(location["latitude"]), float(location["longitude"])),
            ).meters

        rating = place.get("rating")
        return ProviderHit(
            provider=self.name,
            name=(place.get("displayName") or {}).get("text") or None,
            categories=normalize_categories(place.get("types") or []),
            distance_m=distance_m,
            rating=float(rating) if rating is not None else None,
        )
