"""Nearby station tracker: refresh orchestration and periodic tasks."""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from . import config
from .alerts import AlertService
from .location import LocationError, LocationProvider
from .models import ServiceAlert, StationRealtime
from .mta_client import FeedError
from .realtime import RealtimeService
from .snapshot import SnapshotStore, snapshot_from_station
from .station_index import StationIndex, inclusion_radius

logger = logging.getLogger(__name__)

NO_ARRIVALS_MESSAGE = "No arrivals found within a mile. Try refreshing."
UNEXPECTED_ERROR_MESSAGE = "Something went wrong loading nearby trains. Try refreshing."


class Phase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


# LOADING -> LOADING happens when a refresh supersedes one in flight
_TRANSITIONS = {
    Phase.IDLE: {Phase.LOADING},
    Phase.LOADING: {Phase.LOADING, Phase.READY, Phase.ERROR},
    Phase.READY: {Phase.LOADING},
    Phase.ERROR: {Phase.LOADING},
}


def relative_time_label(last_updated: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human-readable age of ``last_updated`` ("just now", "5 min ago", ...)."""
    if last_updated is None:
        return ""
    now = now or datetime.now(timezone.utc)
    delta = (now - last_updated).total_seconds()

    if delta < 30:
        return "just now"
    if delta < 90:
        return "1 min ago"
    if delta < 3600:
        return f"{int(delta / 60)} min ago"
    if delta < 86400:
        hours = int(delta / 3600)
        return "1 hr ago" if hours == 1 else f"{hours} hrs ago"
    days = int(delta / 86400)
    return "1 day ago" if days == 1 else f"{days} days ago"


class NearbyStationTracker:
    """
    Tracks real-time arrivals and alerts for the stations around the rider.

    Each refresh locates the rider, picks nearby stations from the index,
    fetches arrivals and alerts, and publishes the merged result. A new
    refresh cancels one still in flight. After a successful refresh an auto
    refresh task and a relative-label task run on fixed intervals.
    """

    def __init__(
        self,
        station_index: StationIndex,
        location_provider: LocationProvider,
        realtime_service: RealtimeService,
        alert_service: Optional[AlertService] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        max_distance: float = config.NEARBY_MAX_DISTANCE,
        station_limit: int = config.NEARBY_STATION_LIMIT,
        refresh_interval: float = config.REFRESH_INTERVAL,
        relative_label_interval: float = config.RELATIVE_LABEL_INTERVAL,
    ):
        self.station_index = station_index
        self.location_provider = location_provider
        self.realtime_service = realtime_service
        self.alert_service = alert_service
        self.snapshot_store = snapshot_store
        self.station_limit = station_limit
        self.refresh_interval = refresh_interval
        self.relative_label_interval = relative_label_interval

        self.phase = Phase.IDLE
        self.error_message: Optional[str] = None
        self.stations: List[StationRealtime] = []
        self.active_alerts: List[ServiceAlert] = []
        self.last_updated: Optional[datetime] = None
        self.last_updated_relative = ""

        self._max_distance = max(max_distance, 0.0)
        self._refresh_task: Optional[asyncio.Task] = None
        self._auto_refresh_task: Optional[asyncio.Task] = None
        self._relative_task: Optional[asyncio.Task] = None

    @property
    def max_distance(self) -> float:
        return self._max_distance

    @max_distance.setter
    def max_distance(self, value: float) -> None:
        value = max(value, 0.0)
        if value == self._max_distance:
            return
        # The refresh task reads the new value once it starts
        self.refresh()
        self._max_distance = value

    def on_appear(self) -> Optional[asyncio.Task]:
        """Start the first refresh; later calls do nothing."""
        if self.phase != Phase.IDLE:
            return None
        return self.refresh()

    def refresh(self) -> asyncio.Task:
        """
        Start a refresh, cancelling any refresh still in flight.

        Must be called from a running event loop.

        Returns:
            The task running the refresh.
        """
        loop = asyncio.get_running_loop()
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.debug("Superseding in-flight refresh")
            self._refresh_task.cancel()
        self._refresh_task = loop.create_task(self._run_refresh())
        self._set_phase(Phase.LOADING)
        return self._refresh_task

    async def _run_refresh(self) -> None:
        try:
            coordinate = await self.location_provider.request_location()
            nearby = self.station_index.nearest_stations(
                coordinate,
                limit=self.station_limit,
                max_distance=self._max_distance,
                allow_fallback=self._max_distance >= config.NEARBY_MAX_DISTANCE,
            )
            summary = await self.realtime_service.fetch_summary(
                nearby,
                alert_service=self.alert_service,
                inclusion_radius=inclusion_radius(self._max_distance),
            )
        except (LocationError, FeedError) as e:
            logger.warning(f"Refresh failed: {e}")
            self.error_message = str(e)
            self._set_phase(Phase.ERROR)
            return
        except Exception:
            logger.exception("Unexpected error during refresh")
            self.error_message = UNEXPECTED_ERROR_MESSAGE
            self._set_phase(Phase.ERROR)
            return

        self.stations = summary.stations
        self.active_alerts = summary.alerts
        self.last_updated = summary.generated_at
        self.update_relative_label()
        self._start_relative_timer()
        self._start_auto_refresh()

        if not self.stations:
            self.error_message = NO_ARRIVALS_MESSAGE
            self._set_phase(Phase.ERROR)
            return

        self.error_message = None
        self._set_phase(Phase.READY)
        self._save_snapshot()
        logger.info(f"Refreshed {len(self.stations)} stations")

    def update_relative_label(self, now: Optional[datetime] = None) -> str:
        self.last_updated_relative = relative_time_label(self.last_updated, now)
        return self.last_updated_relative

    def _save_snapshot(self) -> None:
        if self.snapshot_store is None or not self.stations:
            return
        try:
            self.snapshot_store.save(snapshot_from_station(self.stations[0], self.last_updated))
        except OSError as e:
            logger.warning(f"Failed to save snapshot: {e}")

    def _set_phase(self, phase: Phase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Invalid phase transition {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _start_relative_timer(self) -> None:
        _cancel(self._relative_task)
        if self.last_updated is None:
            return
        self._relative_task = asyncio.ensure_future(self._relative_loop())

    def _start_auto_refresh(self) -> None:
        _cancel(self._auto_refresh_task)
        self._auto_refresh_task = asyncio.ensure_future(self._auto_refresh_loop())

    async def _relative_loop(self) -> None:
        while True:
            await asyncio.sleep(self.relative_label_interval)
            self.update_relative_label()

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            self.refresh()

    async def close(self) -> None:
        """Cancel the in-flight refresh and both periodic tasks."""
        tasks = [t for t in (self._refresh_task, self._auto_refresh_task, self._relative_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Stopped tracker tasks")


def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is not None and not task.done():
        task.cancel()
