"""Tests for the command-line interface."""

import contextlib
import io
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from feed_fixtures import FakeClient, build_feed

from nearbytrains import cli
from nearbytrains.feeds import FeedSource
from nearbytrains.models import NearestStationSnapshot, SnapshotLine
from nearbytrains.mta_client import HTTPStatusError
from nearbytrains.snapshot import SnapshotStore

UNION_SQ_ARGS = ["nearby", "--lat", "40.734673", "--lon", "-73.989951", "--no-alerts"]


def _run(argv):
    out, err = io.StringIO(), io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = cli.main(argv)
    return code, out.getvalue(), err.getvalue()


class TestNearbyCommand(unittest.TestCase):
    """Test the nearby command."""

    @patch("nearbytrains.cli.MTAClient")
    def test_prints_arrivals(self, mock_client):
        """Test a successful run against the bundled stations."""
        feed = build_feed([("6", "t1", [("635N", 4102444800), ("631N", 4102445400)])])
        mock_client.return_value = FakeClient({FeedSource.NUMBERED: feed})

        code, out, _ = _run(UNION_SQ_ARGS)

        self.assertEqual(code, 0)
        self.assertIn("14 St-Union Sq", out)
        self.assertIn("Line 6 to Grand Central-42 St", out)

    @patch("nearbytrains.cli.MTAClient")
    def test_feed_error(self, mock_client):
        """Test that feed failures exit with status 1."""
        mock_client.return_value = FakeClient(errors={FeedSource.NUMBERED: HTTPStatusError(503)})

        code, _, err = _run(UNION_SQ_ARGS)

        self.assertEqual(code, 1)
        self.assertIn("MTA feed responded with status 503.", err)

    def test_missing_station_data(self):
        """Test that unreadable station data exits with status 2."""
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = str(Path(tmpdir) / "missing.json")
            code, _, _ = _run(UNION_SQ_ARGS + ["--stations", missing, "--stop-map", missing])

        self.assertEqual(code, 2)


class TestSnapshotCommand(unittest.TestCase):
    """Test the snapshot command."""

    def test_no_snapshot(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            code, out, _ = _run(["snapshot", "--path", str(Path(tmpdir) / "snapshot.json")])

        self.assertEqual(code, 1)
        self.assertIn("No snapshot stored.", out)

    def test_prints_snapshot(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "snapshot.json"
            SnapshotStore(path).save(
                NearestStationSnapshot(
                    station_id="L03",
                    station_name="14 St-Union Sq",
                    distance=80.0,
                    lines=[SnapshotLine("L", [])],
                    last_updated=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
                )
            )
            code, out, _ = _run(["snapshot", "--path", str(path)])

        self.assertEqual(code, 0)
        self.assertIn("14 St-Union Sq", out)
        self.assertIn("Line L: no trains", out)


class TestBuildDatasetCommand(unittest.TestCase):
    """Test the build-dataset command."""

    @patch("nearbytrains.cli.GTFSLoader")
    def test_build_from_zip(self, mock_loader_cls):
        mock_loader = mock_loader_cls.return_value
        mock_loader.stations = [object(), object()]

        code, out, _ = _run(["build-dataset", "out", "--gtfs-zip", "gtfs_subway.zip"])

        self.assertEqual(code, 0)
        mock_loader.load_from_zip.assert_called_once_with("gtfs_subway.zip")
        mock_loader.load_from_url.assert_not_called()
        mock_loader.write.assert_called_once_with("out")
        self.assertIn("Wrote 2 stations to out", out)


if __name__ == "__main__":
    unittest.main()
