from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderName(str, Enum):
    FOURSQUARE = "fsq"
    GOOGLE = "google"


class VenueType(str, Enum):
    NIGHTCLUB = "nightclub"
    BAR = "bar"
    COFFEE = "coffee"
    GYM = "gym"
    PARK = "park"
    OFFICE = "office"
    RESTAURANT = "restaurant"
    GENERAL = "general"


class OutcomeKind(str, Enum):
    HIT = "hit"
    NO_MATCH = "no_match"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    SKIPPED = "skipped"


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)


class ProviderHit(BaseModel):
    provider: ProviderName
    name: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    distance_m: Optional[float] = None
    rating: Optional[float] = None


class ProviderOutcome(BaseModel):
    """Tagged result of one provider path (all attempts of one resolution)."""

    provider: ProviderName
    kind: OutcomeKind
    hit: Optional[ProviderHit] = None
    status: Optional[int] = None
    attempts: int = 0

    @property
    def retryable(self) -> bool:
        if self.status is None:
            return False
        return self.status == 429 or 500 <= self.status <= 599


class VenueClassification(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: VenueType
    energy: float = Field(ge=0.0, le=1.0)
    name: Optional[str] = None
    provider: ProviderName
    distance_m: Optional[float] = Field(default=None, alias="distanceM")


class ClassifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    grid_key: Optional[str] = Field(default=None, alias="gridKey")


class ClassifyResponse(BaseModel):
    venue: Optional[VenueClassification] = None
