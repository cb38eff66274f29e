"""HTTP client with typed network errors and request metrics."""
from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_KINDS = ("nearby", "categories", "filters", "details", "photos")


class NetworkError(RuntimeError):
    description = "Unknown error"

    def __str__(self) -> str:
        detail = super().__str__()
        return f"{self.description}: {detail}" if detail else self.description


class InvalidResponseError(NetworkError):
    description = "Invalid response"


class ServerError(NetworkError):
    description = "Server error"

    def __init__(self, status_code: int, body: Optional[str] = None) -> None:
        super().__init__(f"status code {status_code}")
        self.status_code = status_code
        self.body = body


class UnauthorizedError(NetworkError):
    description = "Unauthorized access"


class RateLimitedError(NetworkError):
    description = "Rate limit exceeded"


class RequestTimeoutError(NetworkError):
    description = "Request timed out"


class NoConnectionError(NetworkError):
    description = "No internet connection"


class RequestFailedError(NetworkError):
    description = "Request failed"


def error_for_status(status: int, body: Optional[str] = None) -> NetworkError:
    if status == 401:
        return UnauthorizedError()
    if status == 429:
        return RateLimitedError()
    return ServerError(status, body)


def error_for_exception(exc: requests.RequestException) -> NetworkError:
    if isinstance(exc, requests.Timeout):
        return RequestTimeoutError(str(exc))
    if isinstance(exc, requests.ConnectionError):
        return NoConnectionError(str(exc))
    return RequestFailedError(str(exc))


@dataclass
class RequestMetrics:
    network_nearby: int = 0
    network_categories: int = 0
    network_filters: int = 0
    network_details: int = 0
    network_photos: int = 0
    cache_hits_nearby: int = 0
    cache_hits_categories: int = 0
    cache_hits_filters: int = 0
    cache_hits_details: int = 0
    cache_hits_photos: int = 0

    @property
    def network_total(self) -> int:
        return sum(getattr(self, f"network_{kind}") for kind in REQUEST_KINDS)

    def inc_network(self, kind: str) -> None:
        if kind not in REQUEST_KINDS:
            raise ValueError(f"Unknown request kind: {kind}")
        attr = f"network_{kind}"
        setattr(self, attr, getattr(self, attr) + 1)

    def inc_cache_hit(self, kind: str) -> None:
        if kind not in REQUEST_KINDS:
            raise ValueError(f"Unknown request kind: {kind}")
        attr = f"cache_hits_{kind}"
        setattr(self, attr, getattr(self, attr) + 1)

    def as_dict(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for kind in REQUEST_KINDS:
            out[f"network_{kind}"] = getattr(self, f"network_{kind}")
            out[f"cache_hits_{kind}"] = getattr(self, f"cache_hits_{kind}")
        return out


class HttpClient:
    def __init__(
        self,
        timeout: int = 30,
        retry_max: int = 1,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        auth_token: Optional[str] = None,
    ) -> None:
        self.timeout = timeout
        self.retry_max = max(1, retry_max)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.auth_token = auth_token
        self.session = requests.Session()

    def post_json(
        self,
        url: str,
        body: Dict[str, Any],
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = self._headers(extra_headers)
        headers["Content-Type"] = "application/json"
        payload = json.dumps(body)
        return self._request_json(
            url,
            lambda: self.session.post(url, data=payload, headers=headers, timeout=self.timeout),
        )

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = self._headers(extra_headers)
        return self._request_json(
            url,
            lambda: self.session.get(url, params=params, headers=headers, timeout=self.timeout),
        )

    def _headers(self, extra_headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _request_json(self, url: str, send: Callable[[], requests.Response]) -> Dict[str, Any]:
        for attempt in range(1, self.retry_max + 1):
            try:
                resp = send()
            except requests.RequestException as exc:
                if attempt >= self.retry_max:
                    raise error_for_exception(exc) from exc
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if 200 <= status < 300:
                try:
                    data = resp.json()
                except ValueError as exc:
                    logger.error("Non-JSON response from %s", url)
                    raise InvalidResponseError("body is not JSON") from exc
                if not isinstance(data, dict):
                    raise InvalidResponseError("expected a JSON object")
                return data

            if status in (502, 503, 504):
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    raise error_for_status(status, resp.text)
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            raise error_for_status(status, resp.text)

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
