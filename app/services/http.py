"""Bounded outbound HTTP requests that report failures instead of raising."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FetchResult:
    """Outcome of a JSON request to an upstream service."""

    ok: bool
    data: Any = None
    error: str | None = None
    status_code: int | None = None


def _timeout_seconds(client: httpx.AsyncClient, timeout: float | None) -> float | None:
    if timeout is not None:
        return timeout
    return client.timeout.read


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    json: Any = None,
    timeout: float | None = None,
) -> FetchResult:
    """Issue a request with a hard timeout and parse the JSON body."""

    request_kwargs: dict[str, Any] = {}
    if params is not None:
        request_kwargs["params"] = params
    if headers is not None:
        request_kwargs["headers"] = headers
    if json is not None:
        request_kwargs["json"] = json
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    try:
        response = await client.request(method, url, **request_kwargs)
    except httpx.TimeoutException:
        seconds = _timeout_seconds(client, timeout)
        if seconds is None:
            return FetchResult(ok=False, error="timeout")
        return FetchResult(ok=False, error=f"timeout after {int(seconds * 1000)}ms")
    except httpx.HTTPError as exc:
        logger.debug("Request to %s failed: %r", url, exc)
        return FetchResult(ok=False, error=str(exc) or exc.__class__.__name__)

    if response.status_code >= 400:
        return FetchResult(
            ok=False,
            error=f"{response.status_code} {response.reason_phrase}".strip(),
            status_code=response.status_code,
        )

    try:
        data = response.json()
    except ValueError:
        return FetchResult(
            ok=False, error="invalid JSON payload", status_code=response.status_code
        )
    return FetchResult(ok=True, data=data, status_code=response.status_code)
