"""MTA GTFS-Realtime feed sources and the line-to-feed routing table."""

from enum import Enum
from typing import Dict, FrozenSet, Iterable

FEED_BASE_URL = "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/nyct%2F"


class FeedSource(Enum):
    """Upstream subway feeds, each covering a group of related lines."""
    ACE = "gtfs-ace"
    BDFM = "gtfs-bdfm"
    G = "gtfs-g"
    JZ = "gtfs-jz"
    NQRW = "gtfs-nqrw"
    L = "gtfs-l"
    NUMBERED = "gtfs"  # 1-7 and the 42 St shuttle
    SIR = "gtfs-si"

    @property
    def url(self) -> str:
        return FEED_BASE_URL + self.value


_LINE_FEEDS: Dict[str, FrozenSet[FeedSource]] = {}


def _register(feeds: Iterable[FeedSource], *lines: str) -> None:
    for line in lines:
        _LINE_FEEDS[line] = frozenset(feeds)


_register([FeedSource.ACE], "A", "C", "E", "H", "SR")
_register([FeedSource.BDFM], "B", "D", "F", "FX", "M", "SF")
_register([FeedSource.G], "G")
_register([FeedSource.JZ], "J", "Z")
_register([FeedSource.NQRW], "N", "Q", "R", "W")
_register([FeedSource.L], "L")
_register([FeedSource.NUMBERED], "1", "2", "3", "4", "5", "6", "6X", "7", "7X")
# Shuttles show up in both feeds
_register([FeedSource.NUMBERED, FeedSource.BDFM], "S")
_register([FeedSource.SIR], "SIR")


def feeds_for_line(line: str) -> FrozenSet[FeedSource]:
    """Feeds that may carry trip updates for a line. Unknown lines get none."""
    return _LINE_FEEDS.get(line.upper(), frozenset())


def feeds_for_lines(lines: Iterable[str]) -> FrozenSet[FeedSource]:
    result = set()
    for line in lines:
        result.update(feeds_for_line(line))
    return frozenset(result)
