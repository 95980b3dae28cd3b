"""Project-level configuration for data locations and fetch settings.

Values can be overridden via environment variables:
- ALIGNTEXT_DATA_DIR: root data dir (defaults to <project>/data)
- ALIGNTEXT_SESSION_PATH: JSON file remembering the last URL pair (defaults to <data>/last_session.json)
- ALIGNTEXT_FETCH_TIMEOUT: HTTP timeout in seconds for work pages (defaults to 30)
- ALIGNTEXT_USER_AGENT: User-Agent header sent to AO3
"""

import os
from pathlib import Path
from typing import Final


def _project_root() -> Path:
	"""Return an approximation of the project root (parent of the package)."""
	return Path(__file__).resolve().parents[1]


DATA_DIR: Final[Path] = Path(os.getenv("ALIGNTEXT_DATA_DIR", _project_root() / "data"))
SESSION_PATH: Final[Path] = Path(os.getenv("ALIGNTEXT_SESSION_PATH", DATA_DIR / "last_session.json"))
FETCH_TIMEOUT: Final[float] = float(os.getenv("ALIGNTEXT_FETCH_TIMEOUT", "30"))
USER_AGENT: Final[str] = os.getenv("ALIGNTEXT_USER_AGENT", "aligntext/0.1 (+parallel reader)")

