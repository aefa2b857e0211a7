"""Data models for the nearby station tracker."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional, Tuple


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point."""
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Station:
    """Represents a parent subway station from the bundled dataset."""
    id: str
    name: str
    latitude: float
    longitude: float
    lines: Tuple[str, ...]  # Route IDs served at this station

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(frozen=True)
class StationDistance:
    """A station paired with its distance (meters) from a reference point."""
    station: Station
    distance: float


@dataclass
class StopTimeEvent:
    """Predicted arrival or departure for a single stop."""
    time: Optional[int] = None  # Unix timestamp
    delay: Optional[int] = None  # Seconds


@dataclass
class StopTimeUpdate:
    """A single stop's prediction within a trip update."""
    stop_id: Optional[str] = None
    stop_sequence: Optional[int] = None
    arrival: Optional[StopTimeEvent] = None
    departure: Optional[StopTimeEvent] = None

    @property
    def event_time(self) -> Optional[int]:
        """Arrival time if present, otherwise departure time."""
        if self.arrival is not None and self.arrival.time is not None:
            return self.arrival.time
        if self.departure is not None and self.departure.time is not None:
            return self.departure.time
        return None


@dataclass
class TripUpdate:
    """One vehicle's reported trip progress."""
    trip_id: Optional[str] = None
    route_id: Optional[str] = None
    stop_time_updates: List[StopTimeUpdate] = field(default_factory=list)
    timestamp: Optional[int] = None


@dataclass
class FeedMessage:
    """Decoded GTFS-Realtime feed (trip updates only)."""
    timestamp: Optional[int] = None
    trip_updates: List[TripUpdate] = field(default_factory=list)


@dataclass(frozen=True)
class ActivePeriod:
    """Window during which an alert applies. A missing end is open-ended."""
    start: int
    end: Optional[int] = None

    def is_active(self, now: float) -> bool:
        if self.end is not None:
            return self.start <= now <= self.end
        return now >= self.start


@dataclass(frozen=True)
class ServiceAlert:
    """Represents a service disruption notice."""
    id: str
    title: str
    description: Optional[str] = None
    lines: FrozenSet[str] = frozenset()
    stops: FrozenSet[str] = frozenset()
    alert_type: Optional[str] = None  # e.g. "Delays", "Planned - Part Suspended"
    active_periods: Tuple[ActivePeriod, ...] = ()

    def is_active(self, now: float) -> bool:
        return any(period.is_active(now) for period in self.active_periods)


@dataclass(frozen=True)
class LineArrival:
    """Upcoming arrivals for one line and destination at a station."""
    line: str
    destination: Optional[str]
    arrivals: Tuple[int, ...] = ()  # Ascending Unix timestamps
    alerts: Tuple[ServiceAlert, ...] = ()


@dataclass(frozen=True)
class StationRealtime:
    """A station, its distance, and arrivals for every line it serves."""
    station: Station
    distance: float
    line_arrivals: Tuple[LineArrival, ...] = ()


@dataclass
class RealtimeSummary:
    """Ranked stations plus the alerts attached to any of them."""
    stations: List[StationRealtime]
    alerts: List[ServiceAlert]
    generated_at: datetime


@dataclass
class SnapshotLine:
    """Compact per-line arrivals stored in a snapshot."""
    id: str
    arrivals: List[int]


@dataclass
class NearestStationSnapshot:
    """Precomputed summary of the nearest station for lightweight displays."""
    station_id: str
    station_name: str
    distance: Optional[float]
    lines: List[SnapshotLine]
    last_updated: datetime
