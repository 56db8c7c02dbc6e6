#!/usr/bin/env python3

from __future__ import annotations

"""
Thin HTTP abstraction over requests for riverlevels.

Public API:
    get_text(url, params=None, timeout=None) -> str
"""

from typing import Any, Dict, Optional

import requests

USER_AGENT = "riverlevels (+https://check-for-flooding.service.gov.uk)"


def get_text(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Fetch a URL and return its body as text.

    - Uses requests.get(..., params=params, timeout=timeout)
    - Raises requests.HTTPError on non-2xx status
    - No timeout unless the caller passes one
    """
    resp = requests.get(
        url,
        params=params,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT, "Accept": "text/csv, text/plain, */*"},
    )
    resp.raise_for_status()
    return resp.text
