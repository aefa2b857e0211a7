"""Tests for MTAClient."""

import unittest

import feed_fixtures  # noqa: F401

import httpx

from nearbytrains.feeds import FeedSource, feeds_for_line, feeds_for_lines
from nearbytrains.mta_client import FeedError, HTTPStatusError, InvalidResponseError, MTAClient


def _client(handler, api_key=None):
    transport = httpx.MockTransport(handler)
    return MTAClient(client=httpx.AsyncClient(transport=transport), timeout=5, api_key=api_key)


class TestMTAClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for MTAClient."""

    async def test_fetch_feed_success(self):
        """Test successful feed fetch."""
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=b"\x0a\x00")

        async with _client(handler) as client:
            result = await client.fetch_feed(FeedSource.L)

        self.assertEqual(result, b"\x0a\x00")
        self.assertEqual(requested, [FeedSource.L.url])

    async def test_fetch_feed_status_error(self):
        """Test that a non-2xx response raises HTTPStatusError."""
        async with _client(lambda request: httpx.Response(503)) as client:
            with self.assertRaises(HTTPStatusError) as ctx:
                await client.fetch_feed(FeedSource.ACE)

        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(str(ctx.exception), "MTA feed responded with status 503.")
        self.assertIsInstance(ctx.exception, FeedError)

    async def test_fetch_feed_transport_error(self):
        """Test that connection failures become InvalidResponseError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with self.assertRaises(InvalidResponseError) as ctx:
                await client.fetch_feed(FeedSource.G)

        self.assertEqual(str(ctx.exception), "We couldn't parse the subway feed. Please try again shortly.")

    async def test_api_key_header(self):
        """Test that the API key is sent only when configured."""
        seen = []

        def handler(request):
            seen.append(request.headers.get("x-api-key"))
            return httpx.Response(200, content=b"")

        async with _client(handler, api_key="secret") as client:
            await client.fetch_feed(FeedSource.JZ)
        async with _client(handler) as client:
            await client.fetch_feed(FeedSource.JZ)

        self.assertEqual(seen, ["secret", None])

    async def test_fetch_json(self):
        """Test decoding a JSON document."""
        async with _client(lambda request: httpx.Response(200, json={"entity": []})) as client:
            self.assertEqual(await client.fetch_json("https://example.test/alerts.json"), {"entity": []})

    async def test_fetch_json_invalid(self):
        """Test that an unreadable body raises InvalidResponseError."""
        async with _client(lambda request: httpx.Response(200, content=b"{not json")) as client:
            with self.assertRaises(InvalidResponseError):
                await client.fetch_json("https://example.test/alerts.json")


class TestFeedRouting(unittest.TestCase):
    """Test line to feed routing."""

    def test_known_lines(self):
        """Test a line from each feed."""
        self.assertEqual(feeds_for_line("A"), {FeedSource.ACE})
        self.assertEqual(feeds_for_line("m"), {FeedSource.BDFM})
        self.assertEqual(feeds_for_line("6"), {FeedSource.NUMBERED})
        self.assertEqual(feeds_for_line("SIR"), {FeedSource.SIR})

    def test_shuttle_in_two_feeds(self):
        """Test that the shuttle needs both feeds."""
        self.assertEqual(feeds_for_line("S"), {FeedSource.NUMBERED, FeedSource.BDFM})

    def test_unknown_line(self):
        """Test that unknown lines map to no feeds."""
        self.assertEqual(feeds_for_line("X"), frozenset())

    def test_union_of_feeds(self):
        """Test routing a set of lines."""
        self.assertEqual(feeds_for_lines(["4", "5", "L", "X"]), {FeedSource.NUMBERED, FeedSource.L})

    def test_feed_url(self):
        """Test the feed endpoint."""
        self.assertEqual(
            FeedSource.NQRW.url,
            "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2Fgtfs-nqrw",
        )


if __name__ == "__main__":
    unittest.main()
