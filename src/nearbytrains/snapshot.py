"""Nearest-station snapshot store for lightweight display surfaces."""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .models import NearestStationSnapshot, SnapshotLine, StationRealtime

logger = logging.getLogger(__name__)


def snapshot_from_station(station: StationRealtime, last_updated: datetime) -> NearestStationSnapshot:
    """Compact one station's arrivals, one entry per line with times merged across destinations."""
    lines = {}
    for arrival in station.line_arrivals:
        lines.setdefault(arrival.line, set()).update(arrival.arrivals)

    return NearestStationSnapshot(
        station_id=station.station.id,
        station_name=station.station.name,
        distance=station.distance,
        lines=[SnapshotLine(id=line, arrivals=sorted(times)) for line, times in lines.items()],
        last_updated=last_updated,
    )


class SnapshotStore:
    """Persists a single NearestStationSnapshot as a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, snapshot: NearestStationSnapshot) -> None:
        payload = asdict(snapshot)
        payload["last_updated"] = snapshot.last_updated.isoformat()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug(f"Saved snapshot for {snapshot.station_id} to {self.path}")

    def load(self) -> Optional[NearestStationSnapshot]:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return NearestStationSnapshot(
                station_id=payload["station_id"],
                station_name=payload["station_name"],
                distance=payload.get("distance"),
                lines=[SnapshotLine(id=line["id"], arrivals=list(line["arrivals"])) for line in payload["lines"]],
                last_updated=datetime.fromisoformat(payload["last_updated"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Failed to decode snapshot {self.path}: {e}")
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
