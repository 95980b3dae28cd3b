"""Work page fetchers."""

from .ao3_fetcher import (
    is_valid_ao3_url,
    fetch_work_html,
    fetch_work_pair,
)

__all__ = [
    "is_valid_ao3_url",
    "fetch_work_html",
    "fetch_work_pair",
]
