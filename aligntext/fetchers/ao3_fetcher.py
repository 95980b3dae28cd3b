"""Fetcher for AO3 work pages.

Validates that URLs point at an AO3 work and downloads the page HTML with a
shared requests session.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import urlparse

import requests

from ..config import FETCH_TIMEOUT, USER_AGENT


logger = logging.getLogger(__name__)

AO3_HOST = "archiveofourown.org"


def is_valid_ao3_url(url: str) -> bool:
    """True for URLs on archiveofourown.org whose path contains /works/.

    Examples:
        'https://archiveofourown.org/works/123/chapters/456' -> True
        'https://example.com/works/123' -> False
        'not a url' -> False
    """
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return False
    return parsed.scheme in ("http", "https") and parsed.hostname == AO3_HOST and "/works/" in parsed.path


def _create_session() -> requests.Session:
    """Create a requests session with the configured User-Agent."""
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


def fetch_work_html(url: str, session: Optional[requests.Session] = None) -> str:
    """Download the HTML of one AO3 work page.

    Args:
        url: AO3 work URL
        session: Optional session to reuse (keeps cookies for logged-in users)

    Returns:
        Page HTML as text
    """
    if not is_valid_ao3_url(url):
        raise ValueError(f"Not an AO3 work URL: {url}")

    session = session or _create_session()
    logger.info("Fetching %s", url)
    try:
        response = session.get(url, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ConnectionError(f"Failed to fetch {url}: {e}")
    return response.text


def fetch_work_pair(url_a: str, url_b: str, session: Optional[requests.Session] = None) -> Tuple[str, str]:
    """Fetch both pages with one session; nothing is returned until both succeed."""
    session = session or _create_session()
    html_a = fetch_work_html(url_a, session=session)
    html_b = fetch_work_html(url_b, session=session)
    return html_a, html_b
