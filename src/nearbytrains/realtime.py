"""Realtime arrival aggregation for a set of nearby stations."""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .alerts import AlertService
from .feed_parser import parse_feed
from .feeds import FeedSource, feeds_for_lines
from .models import (
    LineArrival,
    RealtimeSummary,
    ServiceAlert,
    Station,
    StationDistance,
    StationRealtime,
    StopTimeUpdate,
    TripUpdate,
)
from .mta_client import MTAClient
from .station_index import MIN_INCLUSION_RADIUS, StationIndex, haversine

logger = logging.getLogger(__name__)

ARRIVAL_LIMIT = 2
STALE_GRACE_SECONDS = 30

DIRECTION_LABELS = {
    "N": "Northbound",
    "S": "Southbound",
    "E": "Eastbound",
    "W": "Westbound",
}

# (parent station id, line as the station spells it, destination label) -> times
PredictionKey = Tuple[str, str, str]
Predictions = Dict[PredictionKey, Set[int]]

# parent station id -> {upper-cased line: line as the station spells it}
ServedLines = Mapping[str, Mapping[str, str]]


class RealtimeService:
    """Fetches GTFS-Realtime feeds and builds per-station arrival boards."""

    def __init__(self, station_index: StationIndex, client: MTAClient):
        self._index = station_index
        self._client = client

    async def fetch_realtime(
        self,
        station_distances: Sequence[StationDistance],
        now: Optional[float] = None,
    ) -> List[StationRealtime]:
        """
        Get upcoming arrivals for each station, grouped by line and destination.

        Args:
            station_distances: Stations to report on, with their distances.
            now: Unix time used for the staleness cutoff. Defaults to the clock.

        Returns:
            One StationRealtime per input station, in input order. Every line a
            station serves is present, with an empty arrival list when nothing
            is coming.

        Raises:
            FeedError: If any required feed cannot be fetched.
        """
        if not station_distances:
            return []
        now = time.time() if now is None else now

        served = served_lines(sd.station for sd in station_distances)
        lines_of_interest = {line for lines in served.values() for line in lines}
        feeds = feeds_for_lines(lines_of_interest)

        if not feeds:
            logger.debug("No realtime feeds cover the requested stations")
            return [StationRealtime(sd.station, sd.distance) for sd in station_distances]

        partials = await gather_or_cancel(
            *(self._collect_feed(source, served) for source in sorted(feeds, key=lambda f: f.value))
        )
        predictions = merge_predictions(partials)

        return [
            StationRealtime(
                station=sd.station,
                distance=sd.distance,
                line_arrivals=tuple(build_line_arrivals(sd.station, predictions, now)),
            )
            for sd in station_distances
        ]

    async def fetch_summary(
        self,
        station_distances: Sequence[StationDistance],
        alert_service: Optional[AlertService] = None,
        inclusion_radius: float = MIN_INCLUSION_RADIUS,
        now: Optional[float] = None,
    ) -> RealtimeSummary:
        """
        Build the ranked station summary with active alerts attached.

        Arrivals and alerts are fetched concurrently. Alerts are attached to
        each station before same-name stations are merged, so a merged station
        keeps the alerts of all its platforms.
        """
        now = time.time() if now is None else now

        if alert_service is None:
            realtime = await self.fetch_realtime(station_distances, now=now)
            alerts: List[ServiceAlert] = []
        else:
            realtime, alerts = await gather_or_cancel(
                self.fetch_realtime(station_distances, now=now),
                alert_service.fetch_alerts(),
            )

        active = [alert for alert in alerts if alert.is_active(now)]
        decorated, attached = overlay_alerts(realtime, active, self._index)
        stations = merge_stations(decorated, inclusion_radius)

        logger.info(f"Built summary for {len(stations)} stations with {len(attached)} alerts")
        return RealtimeSummary(
            stations=stations,
            alerts=attached,
            generated_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )

    async def _collect_feed(self, source: FeedSource, served: ServedLines) -> Predictions:
        data = await self._client.fetch_feed(source)
        feed = parse_feed(data)
        predictions = collect_predictions(feed.trip_updates, self._index, served)
        logger.debug(f"{source.name}: {len(feed.trip_updates)} trips, {len(predictions)} station keys")
        return predictions


async def gather_or_cancel(*aws: Awaitable) -> list:
    """Run awaitables concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def served_lines(stations: Iterable[Station]) -> Dict[str, Dict[str, str]]:
    return {station.id: {line.upper(): line for line in station.lines} for station in stations}


def order_stop_time_updates(updates: Sequence[StopTimeUpdate]) -> List[StopTimeUpdate]:
    """Sequenced updates first by sequence, then unsequenced ones; ties keep feed order."""
    indexed = sorted(
        enumerate(updates),
        key=lambda pair: (pair[1].stop_sequence is None, pair[1].stop_sequence or 0, pair[0]),
    )
    return [update for _, update in indexed]


def destination_label(route: str, ordered_updates: Sequence[StopTimeUpdate], station_index: StationIndex) -> str:
    """Name of the trip's last stop, a compass direction, or a generic label."""
    last_stop_id = next((u.stop_id for u in reversed(ordered_updates) if u.stop_id), None)
    if last_stop_id is None:
        return f"{route} service"

    parent_id = station_index.parent_station_id(last_stop_id)
    station = station_index.station(parent_id) if parent_id is not None else None
    if station is not None:
        return station.name

    direction = DIRECTION_LABELS.get(last_stop_id[-1:].upper())
    if direction is not None:
        return direction
    return f"{route} service"


def collect_predictions(
    trip_updates: Iterable[TripUpdate],
    station_index: StationIndex,
    served: ServedLines,
) -> Predictions:
    """
    Record predicted times at the target stations from one feed.

    Only lines the matched station actually serves are recorded. Returns a
    fresh mapping owned by the caller.
    """
    lines_of_interest = {line for lines in served.values() for line in lines}
    predictions: Predictions = {}

    for trip in trip_updates:
        if not trip.route_id:
            continue
        route = trip.route_id.upper()
        if route not in lines_of_interest:
            continue

        ordered = order_stop_time_updates(trip.stop_time_updates)
        destination = destination_label(route, ordered, station_index)

        for update in ordered:
            if update.stop_id is None:
                continue
            parent_id = station_index.parent_station_id(update.stop_id)
            station_lines = served.get(parent_id) if parent_id is not None else None
            if station_lines is None or route not in station_lines:
                continue
            event_time = update.event_time
            if event_time is None:
                continue
            key = (parent_id, station_lines[route], destination)
            predictions.setdefault(key, set()).add(event_time)

    return predictions


def merge_predictions(partials: Iterable[Predictions]) -> Predictions:
    merged: Predictions = {}
    for partial in partials:
        for key, times in partial.items():
            merged.setdefault(key, set()).update(times)
    return merged


def line_arrival_sort_key(arrival: LineArrival) -> Tuple[str, str]:
    return arrival.line.casefold(), (arrival.destination or "").casefold()


def upcoming(times: Iterable[int], now: float) -> Tuple[int, ...]:
    """Earliest times no older than the grace window, ascending and capped."""
    cutoff = now - STALE_GRACE_SECONDS
    return tuple(sorted(t for t in set(times) if t >= cutoff)[:ARRIVAL_LIMIT])


def build_line_arrivals(station: Station, predictions: Predictions, now: float) -> List[LineArrival]:
    arrivals = []
    covered = set()
    for (station_id, line, destination), times in predictions.items():
        if station_id != station.id:
            continue
        times = upcoming(times, now)
        if not times:
            continue
        arrivals.append(LineArrival(line=line, destination=destination, arrivals=times))
        covered.add(line)

    for line in station.lines:
        if line not in covered:
            arrivals.append(LineArrival(line=line, destination=None))

    arrivals.sort(key=line_arrival_sort_key)
    return arrivals


def sort_alerts(alerts: Iterable[ServiceAlert]) -> List[ServiceAlert]:
    return sorted(set(alerts), key=lambda alert: (alert.title, alert.id))


def overlay_alerts(
    stations: Sequence[StationRealtime],
    alerts: Sequence[ServiceAlert],
    station_index: StationIndex,
) -> Tuple[List[StationRealtime], List[ServiceAlert]]:
    """
    Attach alerts to every line arrival.

    A line arrival gets the alerts naming its line plus the alerts whose stops
    resolve to its station.

    Returns:
        The decorated stations and the sorted union of alerts attached to any
        of them.
    """
    alert_stations = {alert: station_index.parent_station_ids(alert.stops) for alert in alerts}
    relevant: Set[ServiceAlert] = set()
    decorated = []

    for entry in stations:
        station_alerts = {alert for alert in alerts if entry.station.id in alert_stations[alert]}
        relevant.update(station_alerts)

        line_arrivals = []
        for arrival in entry.line_arrivals:
            line_alerts = {alert for alert in alerts if arrival.line.upper() in alert.lines}
            relevant.update(line_alerts)
            combined = sort_alerts(set(arrival.alerts) | line_alerts | station_alerts)
            line_arrivals.append(replace(arrival, alerts=tuple(combined)))

        decorated.append(replace(entry, line_arrivals=tuple(line_arrivals)))

    return decorated, sort_alerts(relevant)


def merge_stations(stations: Iterable[StationRealtime], inclusion_radius: float) -> List[StationRealtime]:
    """
    Collapse same-name stations lying within ``inclusion_radius`` of each other.

    The merged entry takes the nearest member's identity and distance, the
    union of lines, and per line/destination the union of arrivals (re-capped)
    and alerts. The result is sorted by distance.
    """
    by_name: Dict[str, List[StationRealtime]] = defaultdict(list)
    for entry in stations:
        by_name[entry.station.name].append(entry)

    merged = []
    for group in by_name.values():
        for cluster in _cluster_within_radius(group, inclusion_radius):
            merged.append(_merge_cluster(cluster))

    merged.sort(key=lambda entry: (entry.distance, entry.station.id))
    return merged


def _cluster_within_radius(group: List[StationRealtime], radius: float) -> List[List[StationRealtime]]:
    clusters: List[List[StationRealtime]] = []
    for entry in sorted(group, key=lambda e: (e.distance, e.station.id)):
        for cluster in clusters:
            if all(haversine(member.station.coordinate, entry.station.coordinate) <= radius for member in cluster):
                cluster.append(entry)
                break
        else:
            clusters.append([entry])
    return clusters


def _merge_cluster(cluster: List[StationRealtime]) -> StationRealtime:
    nearest = cluster[0]
    lines: Dict[str, str] = {}
    aggregates: Dict[Tuple[str, Optional[str]], Tuple[Set[int], Set[ServiceAlert]]] = {}

    for entry in cluster:
        for line in entry.station.lines:
            lines.setdefault(line.upper(), line)
        for arrival in entry.line_arrivals:
            lines.setdefault(arrival.line.upper(), arrival.line)
            times, alerts = aggregates.setdefault((arrival.line.upper(), arrival.destination), (set(), set()))
            times.update(arrival.arrivals)
            alerts.update(arrival.alerts)

    line_arrivals = []
    for key, line in lines.items():
        by_destination = {dest: agg for (line_key, dest), agg in aggregates.items() if line_key == key}
        # Empty placeholders only survive when the line has nothing else
        _, idle_alerts = by_destination.pop(None, (set(), set()))
        if not by_destination:
            line_arrivals.append(LineArrival(line=line, destination=None, alerts=tuple(sort_alerts(idle_alerts))))
            continue
        for destination, (times, alerts) in by_destination.items():
            line_arrivals.append(
                LineArrival(
                    line=line,
                    destination=destination,
                    arrivals=tuple(sorted(times)[:ARRIVAL_LIMIT]),
                    alerts=tuple(sort_alerts(alerts | idle_alerts)),
                )
            )
    line_arrivals.sort(key=line_arrival_sort_key)

    station = Station(
        id=nearest.station.id,
        name=nearest.station.name,
        latitude=nearest.station.latitude,
        longitude=nearest.station.longitude,
        lines=tuple(sorted(lines.values(), key=str.casefold)),
    )
    return StationRealtime(station=station, distance=nearest.distance, line_arrivals=tuple(line_arrivals))
