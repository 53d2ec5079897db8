"""Bureau of Meteorology location API client with retry and rate limit handling."""

import logging
import time

import httpx

from bomwatch.ingest.payloads import (
    extract_daily,
    extract_hourly,
    extract_location,
    extract_observation,
    extract_search_results,
    extract_warnings,
)
from bomwatch.models.forecast import DailyForecast, HourlyForecast
from bomwatch.models.location import LocationData, SearchResult
from bomwatch.models.observation import Observation
from bomwatch.models.warning import WeatherWarning

logger = logging.getLogger(__name__)

BOM_BASE_URL = "https://api.weather.bom.gov.au/v1/locations"
DEFAULT_USER_AGENT = "bomwatch/0.1.0"

RETRY_STATUSES = (503, 429, 408)


class BomClient:
    def __init__(
        self,
        base_url: str = BOM_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 7.0,
        max_retries: int = 5,
        retry_base_delay: float = 7.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    def search(self, term: str) -> list[SearchResult]:
        return extract_search_results(self._get_json(self.base_url, {"search": term}))

    def get_location(self, geohash: str) -> LocationData:
        return extract_location(self._get_json(self._url(geohash)))

    def get_observation(self, geohash: str) -> Observation | None:
        return extract_observation(self._get_json(self._url(geohash, "observations")))

    def get_hourly(self, geohash: str) -> HourlyForecast:
        return extract_hourly(self._get_json(self._url(geohash, "forecasts/hourly")))

    def get_daily(self, geohash: str) -> DailyForecast:
        return extract_daily(self._get_json(self._url(geohash, "forecasts/daily")))

    def get_warnings(self, geohash: str) -> list[WeatherWarning]:
        return extract_warnings(self._get_json(self._url(geohash, "warnings")))

    def _url(self, geohash: str, path: str = "") -> str:
        # The API only accepts six character geohashes
        url = f"{self.base_url}/{geohash[:6]}"
        if path:
            url = f"{url}/{path}"
        return url

    def _get_json(self, url: str, params: dict | None = None) -> dict:
        """GET a JSON document.

        Retries on 503/429/408 and transport errors with exponential backoff,
        or the server's Retry-After hint when it sends one.
        """
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = httpx.get(url, params=params, headers=headers, timeout=self.timeout)
                if resp.status_code in RETRY_STATUSES and attempt < self.max_retries:
                    delay = self._retry_delay(resp, attempt)
                    logger.warning(
                        "BoM %s returned %d, retrying in %.1fs (attempt %d/%d)",
                        url, resp.status_code, delay, attempt + 1, self.max_retries,
                    )
                    time.sleep(delay)
                    continue
                resp.raise_for_status()
                logger.debug("GET %s -> %d", resp.url, resp.status_code)
                return resp.json()
            except httpx.RequestError as e:
                last_error = e
                if attempt < self.max_retries:
                    delay = self.retry_base_delay * (2**attempt)
                    logger.warning(
                        "BoM request error, retrying in %.1fs: %s", delay, e
                    )
                    time.sleep(delay)
                    continue
                raise

        assert last_error is not None
        raise last_error

    def _retry_delay(self, resp: httpx.Response, attempt: int) -> float:
        retry_after = resp.headers.get("Retry-After", "")
        if retry_after.isdigit():
            return float(retry_after)
        return self.retry_base_delay * (2**attempt)
