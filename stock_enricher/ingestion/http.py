"""
Shared HTTP plumbing for the provider clients.

``get_json()`` performs one GET through an ``httpx.Client`` and converts
every failure mode into a ``SourceError``:

  - transport errors (DNS, connect, timeout)
  - non-2xx responses (body kept on the error for diagnostics)
  - bodies that are not valid JSON

Query parameters may carry API tokens, so only the URL path is logged.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from stock_enricher.exceptions import SourceError

logger = logging.getLogger(__name__)

# Response bodies attached to errors / logs are cut to this many characters.
MAX_BODY_CHARS = 500


def build_http_client(timeout: float) -> httpx.Client:
    """Return an ``httpx.Client`` with the given total timeout."""
    return httpx.Client(timeout=timeout, follow_redirects=True)


def get_json(
    http: httpx.Client,
    source: str,
    url: str,
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> Any:
    """GET ``url`` and return the decoded JSON body.

    Args:
        http: Client to send the request through.
        source: Provider identifier used on raised errors.
        url: Absolute request URL (without query string).
        params: Query parameters.
        headers: Extra request headers.

    Returns:
        The decoded JSON document.

    Raises:
        SourceError: On transport failure, non-2xx status or undecodable body.
    """
    try:
        resp = http.get(url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise SourceError(source, f"request to {url} failed: {exc}") from exc

    logger.debug("%s GET %s -> %d", source, url, resp.status_code)

    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as exc:
        body = resp.text[:MAX_BODY_CHARS]
        raise SourceError(
            source,
            f"unexpected status {resp.status_code} from {url}",
            status_code=resp.status_code,
            body=body,
        ) from exc

    try:
        return resp.json()
    except ValueError as exc:
        raise SourceError(
            source,
            f"response from {url} is not valid JSON",
            status_code=resp.status_code,
            body=resp.text[:MAX_BODY_CHARS],
        ) from exc
