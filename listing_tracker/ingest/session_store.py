"""Saved browser identity persistence across restarts."""

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import BrowserContext

from listing_tracker.config import settings

logger = logging.getLogger(__name__)


class StorageStateStore:
    """
    Manages the Playwright storage state file.

    Features:
    - Malformed or non-object state is treated as absent
    - Age from file mtime, used as a freshness signal
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize store.

        Args:
            path: Storage state file (defaults to config)
        """
        self.path = Path(path or settings.storage_state_path)

    def ensure_directory(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load Playwright storage state.

        Returns:
            Storage state dictionary or None
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                state = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Invalid storage state file, ignoring: {e}")
            return None

        if not isinstance(state, dict):
            logger.warning("Storage state is not a JSON object, ignoring")
            return None
        return state

    def save(self, state: Dict[str, Any]) -> None:
        """
        Save Playwright storage state.

        Args:
            state: Storage state dictionary (``cookies`` and ``origins``)
        """
        self.ensure_directory()
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, default=str)
        logger.debug(f"Storage state saved to {self.path}")

    async def save_from_context(self, context: BrowserContext) -> None:
        self.save(await context.storage_state())

    def age_seconds(self) -> Optional[float]:
        """Seconds since the state file was last written, or None if absent."""
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to get storage state age: {e}")
            return None
