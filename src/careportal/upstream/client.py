"""HTTP client for the upstream REST API."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from ..config import settings
from .errors import UpstreamError, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Per-request credentials, injected into every upstream call."""

    access_token: str

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


def parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body, treating empty or malformed bodies as ``{}``."""

    text = response.text
    if not text:
        return {}
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return {}


def _error_message(status: int, body: Any) -> str:
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            message = "; ".join(str(item) for item in message)
        if message:
            return str(message)
    return f"Request failed with status {status}"


class UpstreamClient:
    def __init__(
        self,
        context: Optional[RequestContext] = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.context = context
        self.base_url = (base_url or settings.upstream_base_url).rstrip("/")
        if not self.base_url:
            raise ValueError("Upstream base URL is not configured.")
        self.timeout = timeout if timeout is not None else settings.upstream_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.upstream_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.upstream_backoff_seconds
        )
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self.transport,
        )

    def _headers(self, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json", "Cache-Control": "no-store"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self.context is not None:
            headers.update(self.context.auth_headers())
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> Any:
        """Send one request and return the decoded body.

        Only GET requests are retried, and only on network errors or timeouts.
        Writes are never replayed: a lost response to a POST may still have
        been applied upstream.
        """

        method = method.upper()
        retries = self.max_retries if method == "GET" else 0
        query = {key: value for key, value in (params or {}).items() if value not in (None, "")}
        has_body = json_body is not None

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.request(
                        method,
                        path,
                        params=query or None,
                        json=json_body if has_body else None,
                        headers=self._headers(has_body),
                    )
                    break
                except httpx.TimeoutException as exc:
                    attempt += 1
                    if attempt > retries:
                        logger.warning(f"Upstream {method} {path} timed out after {attempt} attempt(s): {exc}")
                        raise UpstreamUnavailable(f"Upstream timed out: {exc}") from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Upstream timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{retries})")
                    time.sleep(wait_time)
                except httpx.TransportError as exc:
                    attempt += 1
                    if attempt > retries:
                        logger.warning(f"Upstream {method} {path} unreachable: {exc}")
                        raise UpstreamUnavailable(
                            f"Failed to connect to upstream API at {self.base_url}: {exc}"
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Upstream network error, retrying in {wait_time:.1f}s (attempt {attempt}/{retries}): {exc}")
                    time.sleep(wait_time)
        finally:
            client.close()

        body = parse_body(response)
        if response.is_error:
            message = _error_message(response.status_code, body)
            logger.info(f"Upstream {method} {path} -> {response.status_code}: {message}")
            raise UpstreamError(response.status_code, message, details=body or response.text or None)
        return body

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None, params: Mapping[str, Any] | None = None) -> Any:
        return self.request("POST", path, params=params, json_body=body)

    def patch(self, path: str, body: Any = None) -> Any:
        return self.request("PATCH", path, json_body=body)

    def delete(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return self.request("DELETE", path, params=params)


def check_health(base_url: str | None = None, transport: httpx.BaseTransport | None = None) -> bool:
    """Check that the upstream answers at all.

    Any HTTP response, including 401 on an unauthenticated identity check,
    counts as reachable.
    """

    base = base_url or settings.upstream_base_url
    if not base:
        return False
    try:
        with httpx.Client(base_url=base, timeout=5.0, transport=transport) as client:
            client.get("/users/me", headers={"Accept": "application/json"})
        return True
    except httpx.HTTPError:
        return False
