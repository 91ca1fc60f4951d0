"""HTTP client with retry/backoff and request accounting."""
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

REQUEST_KINDS = ("search", "details", "geocode")

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class UpstreamError(RuntimeError):
    """The places provider failed or answered with a non-success status."""

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class RequestMetrics:
    network_search: int = 0
    network_details: int = 0
    network_geocode: int = 0
    cache_hits_details: int = 0
    dedup_joins_details: int = 0
    http_attempts: int = 0
    http_retries: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc_network(self, kind: str) -> None:
        if kind not in REQUEST_KINDS:
            raise ValueError(f"Unknown request kind: {kind}")
        with self._lock:
            attr = f"network_{kind}"
            setattr(self, attr, getattr(self, attr) + 1)

    def inc_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits_details += 1

    def inc_dedup_join(self) -> None:
        with self._lock:
            self.dedup_joins_details += 1

    def inc_attempt(self, retry: bool = False) -> None:
        with self._lock:
            self.http_attempts += 1
            if retry:
                self.http_retries += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {
                "network_search": self.network_search,
                "network_details": self.network_details,
                "network_geocode": self.network_geocode,
                "cache_hits_details": self.cache_hits_details,
                "dedup_joins_details": self.dedup_joins_details,
                "http_attempts": self.http_attempts,
                "http_retries": self.http_retries,
            }


class HttpClient:
    """GET-only JSON client for the Places Web Service.

    Every attempt, including retries, is counted on ``metrics`` when given;
    the per-kind ``network_*`` counters stay one per logical request.
    """

    def __init__(
        self,
        api_key: str,
        timeout: int = config.HTTP_TIMEOUT_SECONDS,
        retry_max: int = config.HTTP_RETRY_MAX,
        backoff_base: float = config.HTTP_BACKOFF_BASE,
        backoff_max: float = config.HTTP_BACKOFF_MAX,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.retry_max = max(1, int(retry_max))
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.metrics = metrics
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": config.HTTP_USER_AGENT})

    def get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = dict(params)
        query["key"] = self.api_key

        attempt = 0
        while True:
            attempt += 1
            last_attempt = attempt >= self.retry_max
            if self.metrics is not None:
                self.metrics.inc_attempt(retry=attempt > 1)

            try:
                resp = self.session.get(url, params=query, timeout=self.timeout)
            except requests.RequestException as exc:
                if last_attempt:
                    raise
                logger.warning("Transport error from %s (attempt %s/%s): %s", url, attempt, self.retry_max, exc)
                time.sleep(self._backoff_delay(attempt))
                continue

            if resp.status_code == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    raise

            if resp.status_code not in RETRYABLE_STATUSES or last_attempt:
                logger.error("HTTP %s from %s after %s attempt(s)", resp.status_code, url, attempt)
                resp.raise_for_status()
                raise requests.HTTPError(f"HTTP {resp.status_code} from {url}", response=resp)

            logger.warning("HTTP %s from %s (attempt %s/%s)", resp.status_code, url, attempt, self.retry_max)
            time.sleep(self._retry_delay(resp, attempt))

    def _backoff_delay(self, attempt: int) -> float:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        return base + random.uniform(0, self.backoff_base)

    def _retry_delay(self, resp: requests.Response, attempt: int) -> float:
        # A numeric Retry-After wins over backoff, capped at backoff_max.
        retry_after = resp.headers.get("Retry-After")
        try:
            return max(0.0, min(float(retry_after), self.backoff_max))
        except (TypeError, ValueError):
            return self._backoff_delay(attempt)
