"""Core interfaces for elevation-service backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Sequence

import requests

from altigrid.projection import SamplePoint


class BackendError(Exception):
    """Raised when a backend cannot satisfy a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientBackendError(BackendError):
    """Failure worth retrying: timeout, connection reset, 5xx, rate limit."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code)


class PermanentBackendError(BackendError):
    """Failure that will not go away on retry: bad request, malformed payload."""


class ElevationBackend(ABC):
    """Abstract base class for batch elevation lookups."""

    name: str
    max_batch_size: int

    @abstractmethod
    def fetch_batch(self, points: Sequence[SamplePoint]) -> list[float | None]:
        """Return one elevation per point, in input order.

        ``None`` marks a point the service reports as unknown.
        """


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def check_response(response: requests.Response, service: str) -> None:
    """Raise the backend error matching a non-success HTTP status."""

    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 429:
        raise TransientBackendError(
            f"{service} rate limit hit",
            status_code=status,
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )
    if status >= 500:
        raise TransientBackendError(f"{service} returned HTTP {status}", status_code=status)
    raise PermanentBackendError(f"{service} rejected the request with HTTP {status}", status_code=status)


def send(method: str, url: str, service: str, *, timeout: float, **kwargs: object) -> requests.Response:
    """Issue a request and translate transport failures into backend errors."""

    try:
        response = requests.request(method, url, timeout=timeout, **kwargs)
    except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
        raise TransientBackendError(f"{service} unreachable: {exc}") from exc
    except requests.exceptions.RequestException as exc:
        raise PermanentBackendError(f"{service} request failed: {exc}") from exc
    check_response(response, service)
    return response


def parse_json(response: requests.Response, service: str) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise PermanentBackendError(f"{service} returned invalid JSON: {exc}") from exc
