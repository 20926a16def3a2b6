"""
Geocoding Service - reverse geocoding for address enrichment
"""
import threading
import time
from collections import OrderedDict
from typing import Optional, Tuple

import httpx

from app.core.config import settings
from app.core.errors import ExternalServiceUnavailable
from atams.logging import get_logger

logger = get_logger(__name__)


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"


class GeocodingService:
    """
    Nominatim reverse geocoder with a bounded in-memory TTL cache.

    Gating decisions never depend on this service; `describe` always
    returns something printable.
    """

    def __init__(
        self,
        enabled: bool = None,
        url: str = None,
        user_agent: str = None,
        timeout: float = None,
        cache_size: int = None,
        cache_ttl: int = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock=time.monotonic
    ) -> None:
        self.enabled = settings.GEOCODING_ENABLED if enabled is None else enabled
        self.url = url or settings.GEOCODING_URL
        self.user_agent = user_agent or settings.GEOCODING_USER_AGENT
        self.timeout = settings.EXTERNAL_SERVICE_TIMEOUT_SECONDS if timeout is None else timeout
        self.cache_size = settings.GEOCODING_CACHE_SIZE if cache_size is None else cache_size
        self.cache_ttl = settings.GEOCODING_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self.transport = transport
        self.clock = clock
        self._cache: "OrderedDict[Tuple[float, float], Tuple[float, str]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    def _cache_get(self, key: Tuple[float, float]) -> Optional[str]:
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, address = entry
            if expires_at <= self.clock():
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return address

    def _cache_put(self, key: Tuple[float, float], address: str) -> None:
        with self._cache_lock:
            self._cache[key] = (self.clock() + self.cache_ttl, address)
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    def reverse(self, lat: float, lon: float) -> str:
        """
        Resolve coordinates to a display address

        Raises:
            ExternalServiceUnavailable: Geocoder unreachable, timed out or answered non-2xx
        """
        key = (round(lat, 6), round(lon, 6))
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        params = {
            "lat": lat,
            "lon": lon,
            "format": "json",
            "addressdetails": 1,
            "zoom": 18,
        }
        try:
            with httpx.Client(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                transport=self.transport
            ) as client:
                response = client.get(self.url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(
                "Reverse geocoding failed",
                extra={'extra_data': {'error_type': type(e).__name__, 'lat': lat, 'lon': lon}}
            )
            raise ExternalServiceUnavailable(
                "Geocoding service unavailable",
                details={"service": "geocoding"}
            ) from e
        except ValueError as e:
            raise ExternalServiceUnavailable(
                "Geocoding service returned an invalid response",
                details={"service": "geocoding"}
            ) from e

        address = payload.get("display_name") if isinstance(payload, dict) else None
        if not address:
            address = format_coordinates(lat, lon)
        self._cache_put(key, address)
        return address

    def describe(self, lat: float, lon: float) -> str:
        """Address when available, coordinate string otherwise; never raises"""
        if not self.enabled:
            return format_coordinates(lat, lon)
        try:
            return self.reverse(lat, lon)
        except ExternalServiceUnavailable:
            return format_coordinates(lat, lon)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()
