import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from venue_engine.core.errors import InternalInvariantError
from venue_engine.models import ProviderHit, ProviderName, VenueClassification, VenueType

logger = logging.getLogger(__name__)

# Ordered: the first rule with a keyword contained in any category wins.
CATEGORY_RULES: List[Tuple[Tuple[str, ...], VenueType, float]] = [
    (("nightclub", "dance club", "club"), VenueType.NIGHTCLUB, 0.9),
    (("bar", "pub", "lounge"), VenueType.BAR, 0.7),
    (("coffee", "cafe", "café"), VenueType.COFFEE, 0.6),
    (("gym", "fitness"), VenueType.GYM, 0.8),
    (("park", "outdoor", "recreation"), VenueType.PARK, 0.4),
    (("office", "cowork", "company"), VenueType.OFFICE, 0.5),
    (("restaurant",), VenueType.RESTAURANT, 0.6),
]
DEFAULT_MAPPING = (VenueType.GENERAL, 0.5)

DEFAULT_PREFERENCE = (ProviderName.FOURSQUARE, ProviderName.GOOGLE)


def map_categories(categories: Iterable[str]) -> Tuple[VenueType, float]:
    lowered = [c.lower() for c in categories if c]
    for keywords, venue_type, energy in CATEGORY_RULES:
        if any(k in c for c in lowered for k in keywords):
            return venue_type, energy
    return DEFAULT_MAPPING


class FusionResolver:
    """
    Combine independently settled provider hits into one classification.

    Higher mapped energy wins. Equal energy falls back to the nearer hit when
    both report a distance, then (if enabled) the better rated hit when both
    report a rating, then the provider preference order.
    """

    def __init__(
        self,
        preference: Sequence[ProviderName] = DEFAULT_PREFERENCE,
        use_rating_tiebreak: bool = False,
    ):
        self.preference = list(preference)
        self.use_rating_tiebreak = use_rating_tiebreak

    def classify_hit(self, hit: ProviderHit) -> VenueClassification:
        venue_type, energy = map_categories(hit.categories)
        return VenueClassification(
            type=venue_type,
            energy=energy,
            name=hit.name,
            provider=hit.provider,
            distance_m=hit.distance_m,
        )

    def resolve(self, hits: Iterable[Optional[ProviderHit]]) -> Optional[VenueClassification]:
        present = [h for h in hits if h is not None]
        if not present:
            return None

        seen = set()
        for hit in present:
            if not isinstance(hit, ProviderHit):
                raise InternalInvariantError(f"Fusion got a non-hit value: {hit!r}")
            if hit.provider in seen:
                raise InternalInvariantError(
                    f"Fusion got two hits from provider {hit.provider.value}"
                )
            seen.add(hit.provider)

        candidates = [(hit, self.classify_hit(hit)) for hit in present]
        best_hit, best = candidates[0]
        for hit, venue in candidates[1:]:
            if self._prefer(hit, venue, best_hit, best):
                best_hit, best = hit, venue

        if len(candidates) > 1:
            logger.debug(
                f"Fused {len(candidates)} hits -> {best.provider.value} "
                f"({best.type.value}, energy={best.energy:.2f})"
            )
        return best

    def _rank(self, provider: ProviderName) -> int:
        try:
            return self.preference.index(provider)
        except ValueError:
            return len(self.preference)

    def _prefer(
        self,
        hit: ProviderHit,
        venue: VenueClassification,
        best_hit: ProviderHit,
        best: VenueClassification,
    ) -> bool:
        """True when (hit, venue) should replace the current best."""
        if venue.energy != best.energy:
            return venue.energy > best.energy

        if hit.distance_m is not None and best_hit.distance_m is not None:
            if hit.distance_m != best_hit.distance_m:
                return hit.distance_m < best_hit.distance_m

        if self.use_rating_tiebreak:
            if hit.rating is not None and best_hit.rating is not None:
                if hit.rating != best_hit.rating:
                    return hit.rating > best_hit.rating

        return self._rank(hit.provider) < self._rank(best_hit.provider)
