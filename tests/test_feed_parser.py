"""Tests for the wire decoder and the GTFS-Realtime trip update reader."""

import unittest

from feed_fixtures import build_feed

from google.transit import gtfs_realtime_pb2

from nearbytrains.feed_parser import parse_feed
from nearbytrains.wire import WireDecoder, WireType


class TestWireDecoder(unittest.TestCase):
    """Test the schema-less field cursor."""

    def test_empty_buffer(self):
        """Test that an empty buffer has no fields."""
        self.assertIsNone(WireDecoder(b"").next_field())
        self.assertEqual(list(WireDecoder(b"")), [])

    def test_varint_field(self):
        """Test decoding a multi-byte varint."""
        field = WireDecoder(bytes([0x08, 0x96, 0x01])).next_field()
        self.assertEqual(field.number, 1)
        self.assertEqual(field.wire_type, WireType.VARINT)
        self.assertEqual(field.value, 150)

    def test_negative_varint_as_int64(self):
        """Test two's-complement reinterpretation of a 10-byte varint."""
        data = bytes([0x08] + [0xFF] * 9 + [0x01])
        field = WireDecoder(data).next_field()
        self.assertEqual(field.as_int64(), -1)

    def test_fixed_width_fields(self):
        """Test little-endian fixed32 and fixed64 values."""
        data = bytes([0x0D, 0xFE, 0xFF, 0xFF, 0xFF, 0x11, 0x02, 0, 0, 0, 0, 0, 0, 0])
        fields = list(WireDecoder(data))
        self.assertEqual(fields[0].wire_type, WireType.FIXED32)
        self.assertEqual(fields[0].as_int64(), -2)
        self.assertEqual(fields[1].number, 2)
        self.assertEqual(fields[1].wire_type, WireType.FIXED64)
        self.assertEqual(fields[1].value, 2)

    def test_length_delimited_string(self):
        """Test slicing a length-delimited payload."""
        field = WireDecoder(b"\x22\x04635N").next_field()
        self.assertEqual(field.number, 4)
        self.assertEqual(field.as_string(), "635N")
        self.assertIsNone(field.as_int64())

    def test_invalid_utf8_string(self):
        """Test that undecodable text is absent rather than an error."""
        field = WireDecoder(b"\x0a\x02\xff\xfe").next_field()
        self.assertIsNone(field.as_string())
        self.assertEqual(field.as_bytes(), b"\xff\xfe")

    def test_truncated_varint(self):
        """Test that a varint cut mid-way ends the stream."""
        decoder = WireDecoder(bytes([0x08, 0x96]))
        self.assertIsNone(decoder.next_field())
        self.assertEqual(list(decoder), [])

    def test_length_overrun(self):
        """Test that a length prefix past the end ends the stream."""
        decoder = WireDecoder(bytes([0x12, 0x05, 0x61]))
        self.assertIsNone(decoder.next_field())

    def test_truncated_fixed64(self):
        """Test that a short fixed64 ends the stream."""
        self.assertEqual(list(WireDecoder(bytes([0x09, 0x01, 0x02]))), [])

    def test_group_markers_skipped(self):
        """Test that deprecated group markers are skipped."""
        fields = list(WireDecoder(bytes([0x0B, 0x0C, 0x10, 0x01])))
        self.assertEqual(len(fields), 1)
        self.assertEqual(fields[0].number, 2)
        self.assertEqual(fields[0].value, 1)

    def test_undefined_wire_type_stops(self):
        """Test that wire types without a length stop cleanly."""
        fields = list(WireDecoder(bytes([0x08, 0x01, 0x0E, 0x10, 0x01])))
        self.assertEqual(len(fields), 1)
        self.assertEqual(fields[0].value, 1)

    def test_every_prefix_decodes_safely(self):
        """Test that no truncation of a real feed raises."""
        data = build_feed([("6", "t1", [("635N", 1700000600), ("631N", 1700001200)])])
        for end in range(len(data) + 1):
            prefix = data[:end]
            fields = list(WireDecoder(prefix))
            for field in fields:
                if field.wire_type == WireType.LENGTH_DELIMITED:
                    self.assertLessEqual(len(field.value), len(prefix))
            parse_feed(prefix)


class TestParseFeed(unittest.TestCase):
    """Test materializing trip updates."""

    def test_single_trip_round_trip(self):
        """Test one entity with one stop-time update."""
        data = build_feed([("6", "061150_6..N01R", [("635N", 1700000600)])], timestamp=1700000000)

        feed = parse_feed(data)

        self.assertEqual(feed.timestamp, 1700000000)
        self.assertEqual(len(feed.trip_updates), 1)
        trip = feed.trip_updates[0]
        self.assertEqual(trip.route_id, "6")
        self.assertEqual(trip.trip_id, "061150_6..N01R")
        self.assertEqual(len(trip.stop_time_updates), 1)
        update = trip.stop_time_updates[0]
        self.assertEqual(update.stop_id, "635N")
        self.assertEqual(update.arrival.time, 1700000600)
        self.assertEqual(update.event_time, 1700000600)
        self.assertIsNone(update.departure)

    def test_stop_sequence_departure_and_delay(self):
        """Test the remaining stop-time fields."""
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.header.gtfs_realtime_version = "2.0"
        entity = feed.entity.add()
        entity.id = "1"
        entity.trip_update.trip.route_id = "L"
        entity.trip_update.timestamp = 1700000100
        stop_time = entity.trip_update.stop_time_update.add()
        stop_time.stop_sequence = 7
        stop_time.stop_id = "L03S"
        stop_time.departure.time = 1700000900
        stop_time.departure.delay = -45

        trip = parse_feed(feed.SerializeToString()).trip_updates[0]

        self.assertEqual(trip.timestamp, 1700000100)
        update = trip.stop_time_updates[0]
        self.assertEqual(update.stop_sequence, 7)
        self.assertIsNone(update.arrival)
        self.assertEqual(update.departure.delay, -45)
        self.assertEqual(update.event_time, 1700000900)

    def test_alert_entities_ignored(self):
        """Test that non trip-update entities produce nothing."""
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.header.gtfs_realtime_version = "2.0"
        entity = feed.entity.add()
        entity.id = "alert-1"
        informed = entity.alert.informed_entity.add()
        informed.route_id = "6"

        self.assertEqual(parse_feed(feed.SerializeToString()).trip_updates, [])

    def test_noise_trip_update_dropped(self):
        """Test that a trip update with only a timestamp is discarded."""
        trip_update = bytes([0x20, 0x01])
        entity = bytes([0x1A, len(trip_update)]) + trip_update
        data = bytes([0x12, len(entity)]) + entity

        self.assertEqual(parse_feed(data).trip_updates, [])

    def test_unknown_fields_ignored(self):
        """Test that unknown field numbers do not disturb decoding."""
        data = build_feed([("A", "t1", [("A27N", 1700000600)])])
        unknown = bytes([0x98, 0x06, 0x01])

        feed = parse_feed(unknown + data + unknown)

        self.assertEqual(len(feed.trip_updates), 1)
        self.assertEqual(feed.trip_updates[0].route_id, "A")

    def test_truncated_feed_keeps_earlier_trips(self):
        """Test that a cut-off buffer yields what was readable."""
        data = build_feed(
            [
                ("6", "t1", [("635N", 1700000600)]),
                ("6", "t2", [("635N", 1700001200)]),
            ]
        )

        feed = parse_feed(data[:-3])

        self.assertEqual([t.trip_id for t in feed.trip_updates], ["t1"])

    def test_garbage_yields_no_trips(self):
        """Test that unreadable bytes produce an empty list."""
        self.assertEqual(parse_feed(b"\xff\xff\xff").trip_updates, [])


if __name__ == "__main__":
    unittest.main()
