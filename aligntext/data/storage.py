"""Remembers the last pair of work URLs between runs.

Only the two URLs are stored; anchors live in memory for the lifetime of a
session and are never written here.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

from ..config import SESSION_PATH


logger = logging.getLogger(__name__)


def ensure_parent_dir(path: Path) -> None:
	"""Ensure the parent directory for ``path`` exists (idempotent)."""
	path.parent.mkdir(parents=True, exist_ok=True)


def save_last_urls(url_a: str, url_b: str, path: Optional[Path] = None) -> Path:
	"""Write the URL pair to the session file and return its path."""
	target = path or SESSION_PATH
	ensure_parent_dir(target)
	target.write_text(json.dumps({"last_url_a": url_a, "last_url_b": url_b}, indent=2), encoding="utf-8")
	return target


def load_last_urls(path: Optional[Path] = None) -> Tuple[Optional[str], Optional[str]]:
	"""Return the remembered (url_a, url_b); missing or unreadable files give (None, None)."""
	target = path or SESSION_PATH
	if not target.is_file():
		return None, None
	try:
		data = json.loads(target.read_text(encoding="utf-8"))
	except (OSError, json.JSONDecodeError) as e:
		logger.warning("Ignoring unreadable session file %s: %s", target, e)
		return None, None
	if not isinstance(data, dict):
		return None, None
	return data.get("last_url_a"), data.get("last_url_b")
