"""Configuration settings for nearbytrains."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# MTA API key (optional; subway feeds no longer require one)
MTA_API_KEY = os.getenv("MTA_API_KEY")

# Request timeouts in seconds
MTA_FEED_TIMEOUT = float(os.getenv("MTA_FEED_TIMEOUT", "15"))
MTA_ALERTS_TIMEOUT = float(os.getenv("MTA_ALERTS_TIMEOUT", "20"))

MTA_ALERTS_URL = os.getenv(
    "MTA_ALERTS_URL",
    "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/camsys%2Fsubway-alerts.json",
)

# Nearby search (meters)
NEARBY_MAX_DISTANCE = float(os.getenv("NEARBY_MAX_DISTANCE", "1600"))
NEARBY_STATION_LIMIT = int(os.getenv("NEARBY_STATION_LIMIT", "5"))

# Periodic tasks (seconds)
REFRESH_INTERVAL = float(os.getenv("REFRESH_INTERVAL", "60"))
RELATIVE_LABEL_INTERVAL = float(os.getenv("RELATIVE_LABEL_INTERVAL", "60"))

SNAPSHOT_PATH = Path(os.getenv("SNAPSHOT_PATH", str(Path.home() / ".nearbytrains" / "snapshot.json")))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
