import logging

import httpx


logger = logging.getLogger(__name__)


NOMINATIM_URL = "https://nominatim.openstreetmap.org/"
TIMEOUT = 20


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.4f}, {lng:.4f}"


class Geocoder:
    """Best effort. Any failure comes back as None."""

    def __init__(
        self,
        *,
        base_url: str = NOMINATIM_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = TIMEOUT,
    ) -> None:
        self.http_client = (
            httpx.AsyncClient(
                base_url=base_url,
                headers={"User-Agent": "portion-perfect"},
                timeout=timeout,
            )
            if http_client is None
            else http_client
        )

    async def geocode(self, address: str) -> tuple[float, float] | None:
        try:
            resp = await self.http_client.get(
                "search", params={"format": "json", "q": address, "limit": 1}
            )
            resp.raise_for_status()
            data = resp.json()
            if data:
                return float(data[0]["lat"]), float(data[0]["lon"])
        except (httpx.HTTPError, ValueError, KeyError, IndexError) as e:
            logger.warning("Geocoding %r failed: %r", address, e)
        return None

    async def reverse_geocode(self, lat: float, lng: float) -> str | None:
        try:
            resp = await self.http_client.get(
                "reverse", params={"format": "json", "lat": lat, "lon": lng}
            )
            resp.raise_for_status()
            data = resp.json()
            if data and data.get("display_name"):
                return data["display_name"]
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("Reverse geocoding %s failed: %r", format_coordinates(lat, lng), e)
        return None

    async def describe(self, lat: float, lng: float) -> str:
        """Address for a point, or the raw coordinates when there is none."""
        address = await self.reverse_geocode(lat, lng)
        return format_coordinates(lat, lng) if address is None else address

    async def close(self) -> None:
        await self.http_client.aclose()
