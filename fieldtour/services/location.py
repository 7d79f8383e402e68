"""
Location collaborator.

Supplies the device position. Failures and permission denials are tolerated:
callers fall back to the configured coordinate.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from fieldtour.config import config
from fieldtour.models import Coordinates

logger = logging.getLogger(__name__)


@dataclass
class LocationFix:
    position: Coordinates
    accuracy_meters: Optional[float] = None


class LocationUnavailable(Exception):
    """Raised by providers when no fix can be obtained (denied, no signal)."""


class LocationProvider(Protocol):
    async def current_location(self) -> LocationFix:
        ...


class StaticLocationProvider:
    """Provider returning a fixed position; handy for tests and desktop runs."""

    def __init__(self, position: Optional[Coordinates], accuracy_meters: float = 0.0):
        self.position = position
        self.accuracy_meters = accuracy_meters

    async def current_location(self) -> LocationFix:
        if self.position is None:
            raise LocationUnavailable("No position configured")
        return LocationFix(self.position, self.accuracy_meters)


async def resolve_position(
    provider: Optional[LocationProvider],
    fallback: Optional[Coordinates] = None,
) -> Coordinates:
    """Current device position, or the fallback when none can be obtained."""
    fallback = fallback or config.fallback_position()
    if provider is None:
        return fallback
    try:
        fix = await provider.current_location()
    except LocationUnavailable as e:
        logger.warning(f"[Location] {e}; using fallback {fallback.as_tuple()}")
        return fallback
    return fix.position
