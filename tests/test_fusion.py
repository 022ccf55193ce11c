import pytest

from venue_engine.core.errors import InternalInvariantError
from venue_engine.models import ProviderHit, ProviderName, VenueType
from venue_engine.resolution.fusion import FusionResolver, map_categories

FSQ = ProviderName.FOURSQUARE
GOOGLE = ProviderName.GOOGLE


def _hit(provider, categories, name=None, distance_m=None, rating=None):
    return ProviderHit(
        provider=provider,
        name=name,
        categories=categories,
        distance_m=distance_m,
        rating=rating,
    )


@pytest.mark.parametrize(
    "categories, expected",
    [
        (["Night Club"], (VenueType.NIGHTCLUB, 0.9)),
        (["bar", "nightclub"], (VenueType.NIGHTCLUB, 0.9)),
        (["Cocktail Lounge"], (VenueType.BAR, 0.7)),
        (["coffee shop"], (VenueType.COFFEE, 0.6)),
        (["Café"], (VenueType.COFFEE, 0.6)),
        (["gym", "fitness center"], (VenueType.GYM, 0.8)),
        (["Park"], (VenueType.PARK, 0.4)),
        (["Coworking Space"], (VenueType.OFFICE, 0.5)),
        (["Italian Restaurant"], (VenueType.RESTAURANT, 0.6)),
        (["Hardware Store"], (VenueType.GENERAL, 0.5)),
        ([], (VenueType.GENERAL, 0.5)),
    ],
)
def test_category_rules_first_match_wins(categories, expected):
    assert map_categories(categories) == expected


def test_no_hits_gives_none():
    fusion = FusionResolver()

    assert fusion.resolve([]) is None
    assert fusion.resolve([None, None]) is None


def test_single_hit_carries_name_provider_and_distance():
    venue = FusionResolver().resolve([None, _hit(FSQ, ["bar"], "Joe's Bar", 12.5)])

    assert venue.type == VenueType.BAR
    assert venue.energy == 0.7
    assert venue.name == "Joe's Bar"
    assert venue.provider == FSQ
    assert venue.distance_m == 12.5


def test_higher_energy_wins():
    venue = FusionResolver().resolve(
        [_hit(FSQ, ["coffee shop"], distance_m=5), _hit(GOOGLE, ["gym"], distance_m=70)]
    )

    assert venue.provider == GOOGLE
    assert venue.type == VenueType.GYM


def test_energy_tie_prefers_nearer_hit():
    venue = FusionResolver().resolve(
        [_hit(FSQ, ["pub"], distance_m=60), _hit(GOOGLE, ["bar"], distance_m=20)]
    )

    assert venue.provider == GOOGLE


def test_energy_tie_without_distances_uses_preference_order():
    hits = [_hit(GOOGLE, ["cafe"]), _hit(FSQ, ["coffee"])]

    assert FusionResolver().resolve(hits).provider == FSQ
    assert FusionResolver(preference=[GOOGLE, FSQ]).resolve(hits).provider == GOOGLE


def test_one_sided_distance_falls_through_to_preference():
    venue = FusionResolver().resolve(
        [_hit(FSQ, ["bar"]), _hit(GOOGLE, ["bar"], distance_m=3)]
    )

    assert venue.provider == FSQ


def test_rating_tiebreak_only_when_enabled():
    hits = [_hit(FSQ, ["bar"], rating=3.9), _hit(GOOGLE, ["bar"], rating=4.6)]

    assert FusionResolver().resolve(hits).provider == FSQ
    assert FusionResolver(use_rating_tiebreak=True).resolve(hits).provider == GOOGLE


def test_duplicate_provider_is_an_invariant_error():
    with pytest.raises(InternalInvariantError):
        FusionResolver().resolve([_hit(FSQ, ["bar"]), _hit(FSQ, ["pub"])])
