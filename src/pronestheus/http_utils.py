"""Shared HTTP plumbing: one place that turns httpx failures into reader errors."""

import json
from typing import Any

import httpx

from .errors import (
    BodyReadError,
    ConfigurationError,
    ParseError,
    RequestError,
    UpstreamStatusError,
)


def validate_url(url: str, source: str) -> str:
    """
    Check that ``url`` is an absolute http(s) URL.

    Returns:
        The URL unchanged

    Raises:
        ConfigurationError: If the URL cannot be used for requests
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"failed parsing API URL '{url}': {e}", source) from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigurationError(f"failed parsing API URL '{url}': not an absolute http(s) URL", source)
    return url


def build_timeout(timeout_ms: int) -> httpx.Timeout:
    """Apply one timeout (milliseconds) to connect, read, write and pool."""
    return httpx.Timeout(timeout_ms / 1000.0)


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    source: str,
    check_status: bool = True,
    **kwargs: Any,
) -> Any:
    """
    Issue a request and decode the JSON body.

    Args:
        client: Client to send the request with
        method: HTTP method
        url: Target URL
        source: Name used in raised errors
        check_status: Reject anything but 200 before reading the body
        **kwargs: Passed through to ``client.stream`` (headers, params, content...)

    Returns:
        The decoded JSON document

    Raises:
        RequestError: Transport failure or timeout
        UpstreamStatusError: Status other than 200
        BodyReadError: Body could not be read
        ParseError: Body is not JSON
    """
    try:
        async with client.stream(method, url, **kwargs) as response:
            if check_status and response.status_code != 200:
                raise UpstreamStatusError(response.status_code, source)
            try:
                body = await response.aread()
            except httpx.HTTPError as e:
                raise BodyReadError(f"failed reading response body: {e}", source) from e
    except httpx.HTTPError as e:
        raise RequestError(f"failed API request: {e}", source) from e

    try:
        return json.loads(body)
    except ValueError as e:
        raise ParseError(f"failed unmarshalling response body: {e}", source) from e
