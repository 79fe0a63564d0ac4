"""HTTP client for the OSRM route service."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import httpx

from ...config import settings
from .models import OSRMRoute

logger = logging.getLogger(__name__)

# Two points in central Paris, used for the health check
HEALTH_CHECK_COORDINATES = "2.352222,48.856613;2.294481,48.858370"


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds

    def _get_client(self) -> httpx.Client:
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=10.0))

    def _get_with_retries(self, url: str, params: dict) -> dict:
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {self.max_retries} attempts: {e}")
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to connect to OSRM service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
                else:
                    # NoRoute, InvalidQuery... will not change on a retry
                    if data.get("code") != "Ok":
                        error_msg = data.get("message", "Unknown OSRM route error")
                        raise ValueError(f"OSRM route request failed: {error_msg}")
                    return data
        finally:
            client.close()

    def route(self, coordinates: Sequence[tuple[float, float]]) -> OSRMRoute:
        """Route through the given (lat, lon) waypoints.

        Returns the first route's distance, duration and polyline geometry.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM expects "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

        data = self._get_with_retries(url, params)
        routes = data.get("routes") or []
        if not routes:
            raise ValueError("OSRM route response contains no routes.")

        best = routes[0]
        return OSRMRoute(
            distance_km=float(best["distance"]) / 1000,
            duration_minutes=float(best["duration"]) / 60,
            geometry=best.get("geometry") or "",
        )


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM with a minimal route request.

    Public OSRM endpoints may not expose /health, so connectivity is tested
    with a real request between two fixed points.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        url = f"{base}/route/v1/{settings.osrm_profile}/{HEALTH_CHECK_COORDINATES}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except httpx.HTTPError:
        return False
    except ValueError:
        return False
