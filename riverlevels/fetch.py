"""
Feed fetching.

Transport failures (unreachable host, timeout, non-2xx status) surface as
FetchError before any parsing is attempted. Content problems are not fetch
errors: an unreadable body simply parses to zero points.
"""

from __future__ import annotations

import logging

import requests

from http_client import get_text

from riverlevels.exceptions import FetchError

_logger = logging.getLogger(__name__)


def fetch_feed(url: str, timeout: float | None = None) -> str:
    """Fetch the CSV feed body, raising FetchError on transport failure."""
    try:
        text = get_text(url, timeout=timeout)
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        raise FetchError(f"Failed to fetch CSV: {status}", status_code=status, url=url) from exc
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch CSV: {exc}", url=url) from exc
    _logger.debug("fetched %d bytes from %s", len(text), url)
    return text
