"""Service alert feed normalizer."""

import logging
from typing import Any, Iterable, List, Mapping, Optional

from . import config
from .models import ActivePeriod, ServiceAlert
from .mta_client import InvalidResponseError, MTAClient

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Service Alert"
MERCURY_EXTENSION = "transit_realtime.mercury_alert"


class AlertService:
    """Fetches the MTA JSON subway alert feed as ServiceAlert objects."""

    def __init__(
        self,
        client: MTAClient,
        url: str = config.MTA_ALERTS_URL,
        timeout: float = config.MTA_ALERTS_TIMEOUT,
    ):
        self._client = client
        self._url = url
        self._timeout = timeout

    async def fetch_alerts(self) -> List[ServiceAlert]:
        payload = await self._client.fetch_json(self._url, timeout=self._timeout)
        alerts = parse_alert_feed(payload)
        logger.debug(f"Parsed {len(alerts)} alerts")
        return alerts


def parse_alert_feed(payload: Any) -> List[ServiceAlert]:
    """
    Normalize a decoded alert feed.

    Args:
        payload: The JSON document (``{"entity": [...]}``).

    Returns:
        One ServiceAlert per entity carrying an alert body.

    Raises:
        InvalidResponseError: If the document has no entity list.
    """
    if not isinstance(payload, Mapping) or not isinstance(payload.get("entity"), list):
        raise InvalidResponseError("Service alerts are temporarily unavailable.")

    alerts = []
    for entity in payload["entity"]:
        alert = _to_service_alert(entity)
        if alert is not None:
            alerts.append(alert)
    return alerts


def _to_service_alert(entity: Any) -> Optional[ServiceAlert]:
    if not isinstance(entity, Mapping):
        return None
    detail = entity.get("alert")
    if not isinstance(detail, Mapping) or entity.get("id") is None:
        return None

    informed = [e for e in _as_list(detail.get("informed_entity")) if isinstance(e, Mapping)]
    lines = frozenset(str(e["route_id"]).upper() for e in informed if e.get("route_id"))
    stops = frozenset(str(e["stop_id"]) for e in informed if e.get("stop_id"))

    mercury = detail.get(MERCURY_EXTENSION)
    alert_type = mercury.get("alert_type") if isinstance(mercury, Mapping) else None
    if not isinstance(alert_type, str):
        alert_type = None

    return ServiceAlert(
        id=str(entity["id"]),
        title=_translated_text(detail.get("header_text")) or DEFAULT_TITLE,
        description=_translated_text(detail.get("description_text")),
        lines=lines,
        stops=stops,
        alert_type=alert_type,
        active_periods=tuple(_active_periods(_as_list(detail.get("active_period")))),
    )


def _active_periods(periods: Iterable[Any]) -> Iterable[ActivePeriod]:
    for period in periods:
        if not isinstance(period, Mapping) or period.get("start") is None:
            continue
        end = period.get("end")
        try:
            yield ActivePeriod(start=int(period["start"]), end=int(end) if end is not None else None)
        except (TypeError, ValueError):
            logger.debug(f"Skipping unreadable active period {period!r}")


def _translated_text(container: Any) -> Optional[str]:
    """English translation if present, else the first one."""
    if not isinstance(container, Mapping):
        return None
    translations = [
        t
        for t in _as_list(container.get("translation"))
        if isinstance(t, Mapping) and isinstance(t.get("text"), str)
    ]
    if not translations:
        return None
    for translation in translations:
        if translation.get("language") == "en":
            return translation["text"]
    return translations[0]["text"]


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []
