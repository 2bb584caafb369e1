#!/usr/bin/env python3
"""
Demo Data Seeder for Apex.

Fill a local SQLite database with a bike, a few recorded rides, fuel logs
and a serviced part so every screen has something to show.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --db demo.db --rides 10
"""

import argparse
import math
import random
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from apex.analysis.fuel import FuelEntry
from apex.analysis.geo import track_distance_km
from apex.backend import SQLiteBackend
from apex.core.config import Config
from apex.core.recorder import RideSummary
from apex.services.container import create_services

# Around Nandi Hills, Bengaluru
ORIGIN = (77.6838, 13.3702)


def synthetic_track(rng: random.Random, points: int = 120) -> list[tuple[float, float]]:
    """A wobbly loop of (lon, lat) points a few kilometres across."""
    radius = rng.uniform(0.01, 0.03)
    track = []
    for i in range(points + 1):
        angle = 2 * math.pi * i / points
        wobble = 1 + 0.15 * math.sin(angle * rng.randint(3, 7))
        track.append(
            (
                round(ORIGIN[0] + radius * wobble * math.cos(angle), 6),
                round(ORIGIN[1] + radius * wobble * math.sin(angle), 6),
            )
        )
    return track


def main():
    parser = argparse.ArgumentParser(
        description="Apex Demo Data Seeder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
The database defaults to the one the app uses (<data_dir>/apex.db).
Run it on a fresh database; seeding twice adds a second bike.
        """,
    )
    parser.add_argument("--db", type=str, help="SQLite database path")
    parser.add_argument("--user", type=str, help="Rider id (defaults to backend.user_id)")
    parser.add_argument("--rides", type=int, default=5, help="Number of rides to create")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    parser.add_argument("--config", type=str, help="Path to config directory")

    args = parser.parse_args()

    config = Config(Path(args.config) if args.config else None)
    db_path = Path(args.db) if args.db else config.data_dir / "apex.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    user_id = args.user or config.get("backend.user_id", "local-rider")

    rng = random.Random(args.seed)
    services = create_services(SQLiteBackend(db_path, user_id=user_id))

    try:
        bike = services.bikes.create("Royal Enfield", "Himalayan 450", 4200, year=2024, nick_name="Himmy")
        print(f"Created bike: {bike.display_name} ({bike.id})")

        # Fuel logs every ~300 km before the current odometer
        odometer = 3000
        for i in range(4):
            odometer += rng.randint(250, 350)
            entry = FuelEntry(
                odometer=str(odometer),
                litres=f"{rng.uniform(9, 13):.2f}",
                price_per_litre="102.50",
                is_full_tank=True,
                date=(date.today() - timedelta(days=40 - i * 10)).isoformat(),
            )
            services.fuel_logs.create(bike.id, entry)
        print("Created 4 fuel logs")

        # Rides, oldest first
        now = datetime.now(timezone.utc)
        for i in range(args.rides):
            track = synthetic_track(rng)
            start = now - timedelta(days=args.rides - i, hours=rng.randint(0, 6))
            distance = track_distance_km(track)
            summary = RideSummary(
                start_time=start,
                end_time=start + timedelta(minutes=distance / rng.uniform(35, 55) * 60),
                distance_km=distance,
                max_lean_left=round(rng.uniform(15, 40), 1),
                max_lean_right=round(rng.uniform(15, 40), 1),
                coordinates=track,
            )
            ride = services.rides.save(summary, bike.id)
            print(f"Created ride {ride.id}: {ride.distance_km:.1f} km")

        # Mark the first schedule as serviced part-way through
        schedules = services.schedules.list(bike.id)
        if schedules:
            first = schedules[0]
            services.schedules.complete_service(
                first.id, bike.id, 3600, cost=850.0, notes="Demo service", service_date=date.today() - timedelta(days=60)
            )
            print(f"Serviced: {first.part_name}")

        services.maintenance_logs.create(bike.id, "General Service", 3600, date.today() - timedelta(days=60))
        print(f"Done. Database: {db_path}")
    finally:
        services.close()


if __name__ == "__main__":
    main()
