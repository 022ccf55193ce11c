import argparse
import asyncio
import os
import sys

# Add the project root directory to the python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from venue_engine.core.config import settings
from venue_engine.core.logging_setup import configure_logging
from venue_engine.engine import VenueResolutionEngine
from venue_engine.models import GeoPoint


async def trace_point(engine: VenueResolutionEngine, lat: float, lng: float):
    point = GeoPoint(lat=lat, lng=lng)
    key = engine.indexer.key_for(point)
    print(f"\n{'='*60}", flush=True)
    print(f"POINT: {lat}, {lng}  (grid key {key})", flush=True)
    print(f"{'='*60}", flush=True)

    # 1. Provider Phase
    print("\n--- [Phase 1] Providers (Parallel) ---", flush=True)
    outcomes = await engine.gather_outcomes(point)
    if not outcomes:
        print("  No providers configured.", flush=True)
    for o in outcomes:
        print(
            f"  > {o.provider.value}: {o.kind.value} (status={o.status}, attempts={o.attempts})",
            flush=True,
        )
        if o.hit:
            dist = f"{o.hit.distance_m:.0f}m" if o.hit.distance_m is not None else "N/A"
            print(f"    {o.hit.name} | {o.hit.categories} | Dist: {dist}", flush=True)

    # 2. Fusion Phase
    print("\n--- [Phase 2] Fusion ---", flush=True)
    venue = engine.fusion.resolve(o.hit for o in outcomes)
    if venue is None:
        print("  No classification.", flush=True)
    else:
        print(f"  {venue.model_dump(by_alias=True)}", flush=True)


async def main():
    parser = argparse.ArgumentParser(description="Trace one venue classification")
    parser.add_argument("--lat", type=float, default=40.7128)
    parser.add_argument("--lng", type=float, default=-74.0060)
    args = parser.parse_args()

    configure_logging(level="DEBUG")
    engine = VenueResolutionEngine(settings.engine_config())
    await trace_point(engine, args.lat, args.lng)


if __name__ == "__main__":
    asyncio.run(main())
