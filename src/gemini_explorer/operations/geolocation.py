"""
Location lookup for the maps command.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import requests

from gemini_explorer.errors import GeolocationError

logger = logging.getLogger(__name__)

IP_LOOKUP_URL = "https://ipinfo.io/json"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def describe(self) -> str:
        return f"{self.latitude:.4f}, {self.longitude:.4f}"


class Geolocator(Protocol):
    async def locate(self) -> Coordinates: ...


class StaticGeolocator:
    """Returns a fixed location supplied on the command line."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self._coordinates = Coordinates(latitude, longitude)

    async def locate(self) -> Coordinates:
        return self._coordinates


class IpGeolocator:
    """Approximates the current location from the public IP address."""

    def __init__(self, url: str = IP_LOOKUP_URL, timeout: float = 5.0) -> None:
        self.url = url
        self.timeout = timeout

    def _lookup(self) -> Coordinates:
        try:
            response = requests.get(
                self.url, headers={"Accept": "application/json"}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise GeolocationError(f"Location service unavailable ({e})") from e

        if response.status_code != 200:
            raise GeolocationError(
                f"Location service returned HTTP {response.status_code}"
            )

        # ipinfo reports "lat,lng" in the "loc" field
        loc = response.json().get("loc")
        if not loc:
            raise GeolocationError("Location service did not return coordinates")
        try:
            lat_text, lng_text = loc.split(",", 1)
            return Coordinates(float(lat_text), float(lng_text))
        except ValueError as e:
            raise GeolocationError(f"Unexpected location format: {loc!r}") from e

    async def locate(self) -> Coordinates:
        coordinates = await asyncio.to_thread(self._lookup)
        logger.info("Resolved location %s", coordinates.describe())
        return coordinates
