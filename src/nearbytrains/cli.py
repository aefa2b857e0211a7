"""Command-line interface for nearbytrains."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from . import config
from .alerts import AlertService
from .gtfs_loader import GTFSLoader
from .location import FixedLocationProvider, LocationError
from .models import Coordinate, RealtimeSummary
from .mta_client import FeedError, MTAClient
from .realtime import RealtimeService
from .snapshot import SnapshotStore, snapshot_from_station
from .station_index import StationDataError, StationIndex, inclusion_radius

logger = logging.getLogger(__name__)


def _minutes_away(arrival: int, now: float) -> int:
    return max(0, round((arrival - now) / 60))


def print_summary(summary: RealtimeSummary) -> None:
    """Print stations, arrivals and alerts."""
    now = summary.generated_at.timestamp()
    print(f"\n{'=' * 70}")
    print(f"Updated: {summary.generated_at.astimezone().strftime('%H:%M:%S')}")
    print(f"{'=' * 70}")

    for entry in summary.stations:
        print(f"\n{entry.station.name} ({entry.distance:.0f} m)")
        print("-" * 70)
        for arrival in entry.line_arrivals:
            if arrival.arrivals:
                times = ", ".join(f"{_minutes_away(t, now)} min" for t in arrival.arrivals)
            else:
                times = "no trains"
            destination = f" to {arrival.destination}" if arrival.destination else ""
            flag = " [!]" if arrival.alerts else ""
            print(f"  Line {arrival.line}{destination}: {times}{flag}")

    if summary.alerts:
        print("\nSERVICE ALERTS:")
        print("-" * 70)
        for alert in summary.alerts:
            lines = ", ".join(sorted(alert.lines))
            print(f"  [{lines}] {alert.title}")


async def _run_nearby(args: argparse.Namespace) -> int:
    station_index = StationIndex.load(args.stations, args.stop_map)
    location = FixedLocationProvider(Coordinate(args.lat, args.lon))

    async with MTAClient() as client:
        realtime = RealtimeService(station_index, client)
        alert_service = None if args.no_alerts else AlertService(client)
        coordinate = await location.request_location()
        nearby = station_index.nearest_stations(
            coordinate,
            limit=args.limit,
            max_distance=args.radius,
            allow_fallback=args.radius >= config.NEARBY_MAX_DISTANCE,
        )
        summary = await realtime.fetch_summary(
            nearby,
            alert_service=alert_service,
            inclusion_radius=inclusion_radius(args.radius),
        )

    if not summary.stations:
        print("No arrivals found within a mile. Try refreshing.")
        return 1

    print_summary(summary)
    if args.save_snapshot:
        SnapshotStore(config.SNAPSHOT_PATH).save(snapshot_from_station(summary.stations[0], summary.generated_at))
    return 0


def _run_snapshot(args: argparse.Namespace) -> int:
    snapshot = SnapshotStore(args.path).load()
    if snapshot is None:
        print("No snapshot stored.")
        return 1
    now = datetime.now(timezone.utc).timestamp()
    print(f"{snapshot.station_name} (updated {snapshot.last_updated.astimezone().strftime('%H:%M:%S')})")
    for line in snapshot.lines:
        times = ", ".join(f"{_minutes_away(t, now)} min" for t in line.arrivals) or "no trains"
        print(f"  Line {line.id}: {times}")
    return 0


def _run_build_dataset(args: argparse.Namespace) -> int:
    loader = GTFSLoader()
    if args.gtfs_zip:
        loader.load_from_zip(args.gtfs_zip)
    else:
        loader.load_from_url()
    loader.write(args.out_dir)
    print(f"Wrote {len(loader.stations)} stations to {args.out_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nearbytrains", description="Nearby NYC subway arrivals")
    subparsers = parser.add_subparsers(dest="command", required=True)

    nearby = subparsers.add_parser("nearby", help="Show arrivals at stations near a coordinate")
    nearby.add_argument("--lat", type=float, required=True)
    nearby.add_argument("--lon", type=float, required=True)
    nearby.add_argument("--radius", type=float, default=config.NEARBY_MAX_DISTANCE, help="Search radius in meters")
    nearby.add_argument("--limit", type=int, default=config.NEARBY_STATION_LIMIT)
    nearby.add_argument("--stations", help="Station list JSON (defaults to bundled data)")
    nearby.add_argument("--stop-map", help="Stop-to-parent JSON (defaults to bundled data)")
    nearby.add_argument("--no-alerts", action="store_true", help="Skip the service alert feed")
    nearby.add_argument("--save-snapshot", action="store_true", help="Store the nearest station snapshot")

    snapshot = subparsers.add_parser("snapshot", help="Print the stored nearest-station snapshot")
    snapshot.add_argument("--path", default=str(config.SNAPSHOT_PATH))

    build = subparsers.add_parser("build-dataset", help="Build station JSON from GTFS static data")
    build.add_argument("out_dir")
    build.add_argument("--gtfs-zip", help="Local GTFS zip (downloads from the MTA if omitted)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        if args.command == "nearby":
            return asyncio.run(_run_nearby(args))
        if args.command == "snapshot":
            return _run_snapshot(args)
        return _run_build_dataset(args)
    except StationDataError as e:
        logger.error(f"Station data unavailable: {e}")
        return 2
    except (FeedError, LocationError, httpx.HTTPError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
