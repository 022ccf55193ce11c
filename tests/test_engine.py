import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from venue_engine.core.config import EngineConfig, ProviderConfig
from venue_engine.core.errors import ConfigurationError
from venue_engine.engine import VenueResolutionEngine
from venue_engine.models import GeoPoint, OutcomeKind, ProviderName, VenueType

FSQ = ProviderName.FOURSQUARE
GOOGLE = ProviderName.GOOGLE
NYC = GeoPoint(lat=40.7128, lng=-74.0060)

JOES_BAR = {"results": [{"name": "Joe's Bar", "categories": [{"name": "Bar"}]}]}
NIGHT_CLUB = {
    "places": [
        {
            "displayName": {"text": "Output"},
            "types": ["night_club"],
            "location": {"latitude": 40.7129, "longitude": -74.0060},
        }
    ]
}


def make_engine(fsq_send=None, google_send=None, **overrides):
    providers = {}
    if fsq_send is not None:
        providers[FSQ] = ProviderConfig(api_key="fsq-key")
    if google_send is not None:
        providers[GOOGLE] = ProviderConfig(api_key="google-key")
    overrides.setdefault("retry_base_delay_s", 0.001)
    overrides.setdefault("retry_max_jitter_s", 0.0)
    overrides.setdefault("rate_limit_pause_s", 0.0)
    providers.update(overrides.pop("providers", {}))

    engine = VenueResolutionEngine(EngineConfig(providers=providers, **overrides))
    for adapter in engine.adapters:
        adapter._send = fsq_send if adapter.name == FSQ else google_send
    return engine


async def _hang(point):
    await asyncio.sleep(10)
    return 200, None


@pytest.mark.asyncio
async def test_end_to_end_bar_with_google_timing_out():
    fsq_send = AsyncMock(return_value=(200, JOES_BAR))
    engine = make_engine(fsq_send, _hang, provider_timeout_s=0.05)

    venue = await engine.classify(NYC)

    assert venue.type == VenueType.BAR
    assert venue.energy == 0.7
    assert venue.name == "Joe's Bar"
    assert venue.provider == FSQ
    assert venue.distance_m is None


@pytest.mark.asyncio
async def test_concurrent_calls_for_one_cell_hit_each_provider_once():
    async def slow_fsq(point):
        await asyncio.sleep(0.02)
        return 200, JOES_BAR

    async def slow_google(point):
        await asyncio.sleep(0.02)
        return 200, NIGHT_CLUB

    fsq_send = AsyncMock(side_effect=slow_fsq)
    google_send = AsyncMock(side_effect=slow_google)
    engine = make_engine(fsq_send, google_send)

    results = await asyncio.gather(*(engine.classify(NYC) for _ in range(25)))

    assert fsq_send.await_count == 1
    assert google_send.await_count == 1
    assert all(r is results[0] for r in results)
    assert results[0].type == VenueType.NIGHTCLUB
    assert results[0].provider == GOOGLE
    assert len(engine.coalescer) == 0
    print("\n[PASS] 25 concurrent callers coalesced into one resolution.")


@pytest.mark.asyncio
async def test_resolved_cell_is_served_from_cache():
    fsq_send = AsyncMock(return_value=(200, JOES_BAR))
    engine = make_engine(fsq_send)

    first = await engine.classify(NYC)
    nearby = GeoPoint(lat=NYC.lat + 0.0001, lng=NYC.lng + 0.0001)
    second = await engine.classify(nearby)

    assert second == first
    assert fsq_send.await_count == 1


@pytest.mark.asyncio
async def test_unresolved_cell_is_retried_every_call():
    fsq_send = AsyncMock(return_value=(200, {"results": []}))
    engine = make_engine(fsq_send)

    assert await engine.classify(NYC) is None
    assert await engine.classify(NYC) is None
    assert fsq_send.await_count == 2
    assert len(engine.cache) == 0


@pytest.mark.asyncio
async def test_no_providers_means_none_without_network():
    engine = VenueResolutionEngine(EngineConfig())

    with patch("aiohttp.ClientSession") as session_cls:
        assert await engine.classify(NYC) is None
        assert await engine.classify(None) is None

    session_cls.assert_not_called()
    assert engine.adapters == []


@pytest.mark.asyncio
async def test_providers_without_keys_are_not_built():
    config = EngineConfig(
        providers={FSQ: ProviderConfig(api_key=""), GOOGLE: ProviderConfig(api_key="g")}
    )
    engine = VenueResolutionEngine(config)

    assert [a.name for a in engine.adapters] == [GOOGLE]


@pytest.mark.asyncio
async def test_denied_rate_limit_skips_provider():
    fsq_send = AsyncMock(return_value=(200, JOES_BAR))
    google_send = AsyncMock(return_value=(200, NIGHT_CLUB))
    engine = make_engine(
        fsq_send,
        google_send,
        providers={FSQ: ProviderConfig(api_key="fsq-key", rate_limit_per_minute=1)},
    )

    await engine.classify(NYC)
    far_away = GeoPoint(lat=48.8566, lng=2.3522)
    outcomes = await engine.gather_outcomes(far_away)

    kinds = {o.provider: o.kind for o in outcomes}
    assert kinds[FSQ] == OutcomeKind.SKIPPED
    assert kinds[GOOGLE] == OutcomeKind.HIT
    assert fsq_send.await_count == 1
    assert google_send.await_count == 2


@pytest.mark.asyncio
async def test_unexpected_adapter_error_does_not_reach_caller():
    fsq_send = AsyncMock(side_effect=RuntimeError("adapter bug"))
    google_send = AsyncMock(return_value=(200, NIGHT_CLUB))
    engine = make_engine(fsq_send, google_send)

    venue = await engine.classify(NYC)

    assert venue.provider == GOOGLE
    assert venue.type == VenueType.NIGHTCLUB


@pytest.mark.asyncio
async def test_server_errors_retried_then_fused():
    fsq_send = AsyncMock(side_effect=[(500, None), (503, None), (200, JOES_BAR)])
    engine = make_engine(fsq_send)

    venue = await engine.classify(NYC)

    assert fsq_send.await_count == 3
    assert venue.name == "Joe's Bar"


@pytest.mark.asyncio
async def test_all_providers_down_gives_none():
    engine = make_engine(
        AsyncMock(return_value=(403, None)),
        AsyncMock(return_value=(500, None)),
    )

    assert await engine.classify(NYC) is None


def test_invalid_timeout_rejected():
    with pytest.raises(ConfigurationError):
        VenueResolutionEngine(EngineConfig(provider_timeout_s=0))
