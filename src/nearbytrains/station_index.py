"""Read-only index of bundled subway stations and stop-to-parent mappings."""

import json
import logging
import math
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .models import Coordinate, Station, StationDistance

logger = logging.getLogger(__name__)

STATIONS_RESOURCE = "subway_stations.json"
STOP_PARENT_RESOURCE = "stop_parent.json"

# Co-named platforms are gathered within at least this radius (meters)
MIN_INCLUSION_RADIUS = 250.0

EARTH_RADIUS_M = 6371000.0


class StationDataError(RuntimeError):
    """Raised when the static station dataset is missing or malformed."""


def haversine(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates."""
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.latitude))
        * math.cos(math.radians(b.latitude))
        * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def inclusion_radius(max_distance: float) -> float:
    return max(max_distance, MIN_INCLUSION_RADIUS)


class StationIndex:
    """
    Immutable lookup table of stations.

    Built once at startup and shared by reference. Supports nearest-station
    queries and resolution of child platform stop IDs (e.g. "127N") to their
    parent station (e.g. "127").
    """

    def __init__(self, stations: Iterable[Station], stop_to_parent: Mapping[str, str]):
        self._stations: Tuple[Station, ...] = tuple(stations)
        index: Dict[str, Station] = {}
        for station in self._stations:
            if station.id in index:
                raise StationDataError(f"Duplicate station id {station.id!r}")
            index[station.id] = station
        self._station_index = MappingProxyType(index)
        self._stop_to_parent = MappingProxyType(dict(stop_to_parent))

    @classmethod
    def load(
        cls,
        stations_path: Optional[Union[str, Path]] = None,
        stop_map_path: Optional[Union[str, Path]] = None,
    ) -> "StationIndex":
        """
        Load the station list and stop-to-parent map.

        Args:
            stations_path: Optional station list JSON. Defaults to the bundled file.
            stop_map_path: Optional stop map JSON. Defaults to the bundled file.

        Raises:
            StationDataError: If either file is missing or malformed.
        """
        try:
            stations_json = _read_text(stations_path, STATIONS_RESOURCE)
            stop_map_json = _read_text(stop_map_path, STOP_PARENT_RESOURCE)
            index = cls(
                _decode_stations(stations_json),
                _decode_stop_map(stop_map_json),
            )
        except StationDataError as e:
            logger.error(f"Failed to load station data: {e}")
            raise
        logger.info(f"Loaded {len(index)} stations and {len(index._stop_to_parent)} stop mappings")
        return index

    def __len__(self) -> int:
        return len(self._stations)

    @property
    def stations(self) -> Tuple[Station, ...]:
        return self._stations

    @property
    def stop_to_parent(self) -> Mapping[str, str]:
        return self._stop_to_parent

    def station(self, station_id: str) -> Optional[Station]:
        """Get station by ID, or None."""
        return self._station_index.get(station_id)

    def nearest_stations(
        self,
        coordinate: Coordinate,
        limit: int = 5,
        max_distance: float = 1200,
        allow_fallback: bool = True,
    ) -> List[StationDistance]:
        """
        Find the stations closest to a coordinate.

        Args:
            coordinate: Reference point.
            limit: Maximum number of primary matches.
            max_distance: Search radius in meters.
            allow_fallback: If nothing is within the radius, return the
                ``limit`` nearest stations anyway.

        Returns:
            StationDistance list sorted by ascending distance. Stations sharing
            a selected station's name within the inclusion radius are appended
            even past ``limit``.
        """
        if not self._stations or limit <= 0:
            return []

        scored = sorted(
            (StationDistance(station, haversine(coordinate, station.coordinate)) for station in self._stations),
            key=lambda sd: sd.distance,
        )

        # Widen the window before applying the radius
        selected = [sd for sd in scored[: limit * 2] if sd.distance <= max_distance][:limit]

        if not selected:
            if not allow_fallback:
                return []
            selected = scored[:limit]

        selected_names = {sd.station.name for sd in selected}
        seen_ids = {sd.station.id for sd in selected}
        radius = inclusion_radius(max_distance)

        for candidate in scored:
            if candidate.station.name not in selected_names or candidate.station.id in seen_ids:
                continue
            if candidate.distance > radius:
                continue
            selected.append(candidate)
            seen_ids.add(candidate.station.id)

        selected.sort(key=lambda sd: sd.distance)
        return selected

    def parent_station_id(self, stop_id: str) -> Optional[str]:
        """
        Resolve a child stop ID to its parent station ID.

        Tries an exact match, then drops trailing characters one at a time
        (direction and platform suffixes), then a case-insensitive match.
        """
        parent = self._stop_to_parent.get(stop_id)
        if parent is not None:
            return parent

        candidate = stop_id
        while len(candidate) > 1:
            candidate = candidate[:-1]
            parent = self._stop_to_parent.get(candidate)
            if parent is not None:
                return parent

        folded = stop_id.casefold()
        for key, value in self._stop_to_parent.items():
            if key.casefold() == folded:
                return value
        return None

    def parent_station_ids(self, stop_ids: Iterable[str]) -> Set[str]:
        """Resolve many stop IDs, skipping the ones that do not resolve."""
        result: Set[str] = set()
        for stop_id in stop_ids:
            parent = self.parent_station_id(stop_id)
            if parent is not None:
                result.add(parent)
        return result


def _read_text(path: Optional[Union[str, Path]], resource_name: str) -> str:
    try:
        if path is not None:
            return Path(path).read_text(encoding="utf-8")
        return resources.files("nearbytrains").joinpath("data", resource_name).read_text(encoding="utf-8")
    except OSError as e:
        raise StationDataError(f"Missing station resource {path or resource_name}: {e}") from e


def _decode_stations(text: str) -> List[Station]:
    try:
        records = json.loads(text)
    except json.JSONDecodeError as e:
        raise StationDataError(f"Invalid station list JSON: {e}") from e
    if not isinstance(records, list):
        raise StationDataError("Station list must be a JSON array")

    stations = []
    for record in records:
        try:
            stations.append(
                Station(
                    id=str(record["id"]),
                    name=str(record["name"]),
                    latitude=float(record["latitude"]),
                    longitude=float(record["longitude"]),
                    lines=tuple(str(line) for line in record["lines"]),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StationDataError(f"Invalid station record {record!r}: {e}") from e
    return stations


def _decode_stop_map(text: str) -> Dict[str, str]:
    try:
        mapping = json.loads(text)
    except json.JSONDecodeError as e:
        raise StationDataError(f"Invalid stop map JSON: {e}") from e
    if not isinstance(mapping, dict) or not all(isinstance(v, str) for v in mapping.values()):
        raise StationDataError("Stop map must be a flat JSON object of strings")
    return mapping
