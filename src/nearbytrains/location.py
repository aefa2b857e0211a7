"""Location collaborator interface."""

from typing import Optional, Protocol

from .models import Coordinate


class LocationError(Exception):
    """Base class for location failures."""

    retryable = False


class PermissionDeniedError(LocationError):
    def __init__(self, message: str = "Location access is required to show nearby subway lines. Enable it in Settings."):
        super().__init__(message)


class LocationRestrictedError(LocationError):
    def __init__(self, message: str = "Location services are restricted on this device."):
        super().__init__(message)


class LocationUnavailableError(LocationError):
    retryable = True

    def __init__(self, message: str = "We couldn't determine your location."):
        super().__init__(message)


class LocationProvider(Protocol):
    async def request_location(self) -> Coordinate:
        """Return the best known coordinate or raise a LocationError."""
        ...


class FixedLocationProvider:
    """Always reports the same coordinate, e.g. from the command line."""

    def __init__(self, coordinate: Optional[Coordinate] = None):
        self.coordinate = coordinate

    async def request_location(self) -> Coordinate:
        if self.coordinate is None:
            raise LocationUnavailableError()
        return self.coordinate
