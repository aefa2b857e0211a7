"""nearbytrains - Real-time MTA subway arrivals for the stations around you."""

__version__ = "0.1.0"

from .models import Coordinate, Station, StationDistance, LineArrival, StationRealtime, ServiceAlert
from .station_index import StationIndex, StationDataError
from .mta_client import MTAClient, FeedError, HTTPStatusError, InvalidResponseError
from .alerts import AlertService
from .realtime import RealtimeService
from .station_tracker import NearbyStationTracker, Phase

__all__ = [
    "NearbyStationTracker",
    "Phase",
    "RealtimeService",
    "AlertService",
    "MTAClient",
    "StationIndex",
    "StationDataError",
    "FeedError",
    "HTTPStatusError",
    "InvalidResponseError",
    "Coordinate",
    "Station",
    "StationDistance",
    "LineArrival",
    "StationRealtime",
    "ServiceAlert",
]
