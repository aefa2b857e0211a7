"""Builds the bundled station dataset from MTA GTFS static data."""

import io
import json
import logging
import zipfile
from pathlib import Path
from typing import IO, Dict, List, Union

import httpx
import pandas as pd

from .models import Station
from .station_index import STATIONS_RESOURCE, STOP_PARENT_RESOURCE, StationDataError, StationIndex

logger = logging.getLogger(__name__)

# MTA GTFS static data URL
MTA_GTFS_URL = "https://rrgtfsfeeds.s3.amazonaws.com/gtfs_subway.zip"


class GTFSLoader:
    """Turns a GTFS static feed into parent stations and a stop-to-parent map."""

    def __init__(self):
        self.stations: List[Station] = []
        self.stop_to_parent: Dict[str, str] = {}

    def load_from_url(self, url: str = MTA_GTFS_URL, timeout: float = 60.0) -> None:
        """Download and load a GTFS zip."""
        logger.info(f"Downloading GTFS data from {url}")
        try:
            response = httpx.get(url, timeout=timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to download GTFS data: {e}")
            raise
        self.load_from_zip(io.BytesIO(response.content))

    def load_from_zip(self, source: Union[str, Path, IO[bytes]]) -> None:
        """Load stops, routes, trips and stop times from a GTFS zip."""
        try:
            with zipfile.ZipFile(source) as zip_file:
                stops = pd.read_csv(zip_file.open("stops.txt"), dtype=str)
                routes = pd.read_csv(zip_file.open("routes.txt"), dtype=str)
                trips = pd.read_csv(zip_file.open("trips.txt"), dtype=str, usecols=["route_id", "trip_id"])
                stop_times = pd.read_csv(
                    zip_file.open("stop_times.txt"), dtype=str, usecols=["trip_id", "stop_id"]
                )
        except (KeyError, ValueError, zipfile.BadZipFile) as e:
            logger.error(f"Failed to read GTFS zip: {e}")
            raise StationDataError(f"Unreadable GTFS archive: {e}") from e

        self.load_frames(stops, routes, trips, stop_times)

    def load_frames(
        self,
        stops: pd.DataFrame,
        routes: pd.DataFrame,
        trips: pd.DataFrame,
        stop_times: pd.DataFrame,
    ) -> None:
        """
        Build stations from already-parsed GTFS tables.

        Top-level stops (no parent_station) become stations. Each stop maps to
        its parent; top-level stops map to themselves. A station's lines are
        the routes whose trips call at it or at any of its platforms, in
        routes.txt order.
        """
        stops = stops.copy()
        for column in ("parent_station", "location_type"):
            if column not in stops.columns:
                stops[column] = ""
        stops = stops.fillna("")

        parents = stops["parent_station"].where(stops["parent_station"] != "", stops["stop_id"])
        self.stop_to_parent = dict(zip(stops["stop_id"], parents))

        served = (
            stop_times[["trip_id", "stop_id"]]
            .drop_duplicates()
            .merge(trips[["trip_id", "route_id"]].drop_duplicates(), on="trip_id")
        )
        served["parent"] = served["stop_id"].map(self.stop_to_parent).fillna(served["stop_id"])
        served = served[["parent", "route_id"]].drop_duplicates()

        route_order = {route_id: i for i, route_id in enumerate(routes["route_id"])}
        lines_by_parent: Dict[str, List[str]] = {}
        for parent, group in served.groupby("parent"):
            lines_by_parent[parent] = sorted(
                set(group["route_id"]), key=lambda r: (route_order.get(r, len(route_order)), r)
            )

        top_level = stops[stops["parent_station"] == ""]
        self.stations = [
            Station(
                id=row.stop_id,
                name=row.stop_name,
                latitude=float(row.stop_lat),
                longitude=float(row.stop_lon),
                lines=tuple(lines_by_parent.get(row.stop_id, [])),
            )
            for row in top_level.itertuples(index=False)
        ]
        logger.info(f"Built {len(self.stations)} stations from {len(stops)} stops")

    def to_index(self) -> StationIndex:
        return StationIndex(self.stations, self.stop_to_parent)

    def write(self, out_dir: Union[str, Path]) -> None:
        """Write ``subway_stations.json`` and ``stop_parent.json``."""
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        records = [
            {
                "id": s.id,
                "name": s.name,
                "latitude": s.latitude,
                "longitude": s.longitude,
                "lines": list(s.lines),
            }
            for s in self.stations
        ]
        (out_dir / STATIONS_RESOURCE).write_text(json.dumps(records, indent=2), encoding="utf-8")
        (out_dir / STOP_PARENT_RESOURCE).write_text(
            json.dumps(self.stop_to_parent, indent=2, sort_keys=True), encoding="utf-8"
        )
        logger.info(f"Wrote station dataset to {out_dir}")
