"""GTFS-Realtime trip update reader built on the wire decoder."""

import logging
from typing import List, Optional, Tuple

from .models import FeedMessage, StopTimeEvent, StopTimeUpdate, TripUpdate
from .wire import Field, WireDecoder, WireType

logger = logging.getLogger(__name__)

# Field numbers from gtfs-realtime.proto
FEED_HEADER = 1
FEED_ENTITY = 2
HEADER_TIMESTAMP = 3
ENTITY_TRIP_UPDATE = 3
TRIP_DESCRIPTOR = 1
TRIP_STOP_TIME_UPDATE = 2
TRIP_TIMESTAMP = 4
DESCRIPTOR_TRIP_ID = 1
DESCRIPTOR_ROUTE_ID = 5
STOP_SEQUENCE = 1
STOP_ARRIVAL = 2
STOP_DEPARTURE = 3
STOP_ID = 4
EVENT_DELAY = 1
EVENT_TIME = 2


def parse_feed(data: bytes) -> FeedMessage:
    """
    Decode the trip updates contained in a GTFS-Realtime feed.

    Unknown fields are ignored and unreadable fields are left unset; this
    never raises on malformed input.

    Args:
        data: Raw protobuf bytes of a FeedMessage.

    Returns:
        FeedMessage with the header timestamp and every trip update found.
    """
    feed = FeedMessage()

    for field in WireDecoder(data):
        payload = _nested(field)
        if payload is None:
            continue
        if field.number == FEED_HEADER:
            feed.timestamp = _parse_header_timestamp(payload)
        elif field.number == FEED_ENTITY:
            feed.trip_updates.extend(_parse_entity(payload))

    logger.debug(f"Decoded {len(feed.trip_updates)} trip updates")
    return feed


def _nested(field: Field) -> Optional[bytes]:
    if field.wire_type != WireType.LENGTH_DELIMITED:
        return None
    return field.value


def _parse_header_timestamp(data: bytes) -> Optional[int]:
    timestamp = None
    for field in WireDecoder(data):
        if field.number == HEADER_TIMESTAMP:
            timestamp = field.as_int64()
    return timestamp


def _parse_entity(data: bytes) -> List[TripUpdate]:
    trip_updates = []
    for field in WireDecoder(data):
        if field.number != ENTITY_TRIP_UPDATE:
            continue
        payload = _nested(field)
        if payload is None:
            continue
        trip_update = _parse_trip_update(payload)
        if trip_update is not None:
            trip_updates.append(trip_update)
    return trip_updates


def _parse_trip_update(data: bytes) -> Optional[TripUpdate]:
    descriptor: Optional[Tuple[Optional[str], Optional[str]]] = None
    stop_time_updates: List[StopTimeUpdate] = []
    timestamp = None

    for field in WireDecoder(data):
        if field.number == TRIP_DESCRIPTOR:
            payload = _nested(field)
            if payload is not None:
                descriptor = _parse_trip_descriptor(payload)
        elif field.number == TRIP_STOP_TIME_UPDATE:
            payload = _nested(field)
            if payload is None:
                continue
            update = _parse_stop_time_update(payload)
            if update is not None:
                stop_time_updates.append(update)
        elif field.number == TRIP_TIMESTAMP:
            value = field.as_int64()
            if value is not None:
                timestamp = value

    # Neither descriptor nor stops: nothing to report
    if descriptor is None and not stop_time_updates:
        return None

    trip_id, route_id = descriptor if descriptor is not None else (None, None)
    return TripUpdate(
        trip_id=trip_id,
        route_id=route_id,
        stop_time_updates=stop_time_updates,
        timestamp=timestamp,
    )


def _parse_trip_descriptor(data: bytes) -> Tuple[Optional[str], Optional[str]]:
    trip_id = None
    route_id = None
    for field in WireDecoder(data):
        if field.number == DESCRIPTOR_TRIP_ID:
            trip_id = field.as_string() or trip_id
        elif field.number == DESCRIPTOR_ROUTE_ID:
            route_id = field.as_string() or route_id
    return trip_id, route_id


def _parse_stop_time_update(data: bytes) -> Optional[StopTimeUpdate]:
    update = StopTimeUpdate()

    for field in WireDecoder(data):
        if field.number == STOP_SEQUENCE:
            if field.wire_type == WireType.VARINT:
                update.stop_sequence = field.value
        elif field.number == STOP_ARRIVAL:
            payload = _nested(field)
            if payload is not None:
                update.arrival = _parse_event(payload)
        elif field.number == STOP_DEPARTURE:
            payload = _nested(field)
            if payload is not None:
                update.departure = _parse_event(payload)
        elif field.number == STOP_ID:
            stop_id = field.as_string()
            if stop_id is not None:
                update.stop_id = stop_id

    if update.stop_id is None and update.arrival is None and update.departure is None:
        return None
    return update


def _parse_event(data: bytes) -> StopTimeEvent:
    event = StopTimeEvent()
    for field in WireDecoder(data):
        value = field.as_int64()
        if value is None:
            continue
        if field.number == EVENT_DELAY:
            event.delay = value
        elif field.number == EVENT_TIME:
            event.time = value
    return event
