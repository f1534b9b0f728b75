"""
Persists the list of app ids the user chose to prefill.
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterable

from steam_prefill.exceptions import SelectionStoreError

log = logging.getLogger(__name__)


class SelectionStore:
    """Reads and writes the selected apps file, a JSON array of app ids."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> list[int]:
        """
        Returns the previously selected app ids, or an empty list if none were saved.

        Raises:
            SelectionStoreError: If the file exists but can't be read or parsed.
            Returning an empty list here would silently drop the user's selection.
        """
        if not self.path.is_file():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SelectionStoreError(
                f"Could not read selected apps from '{self.path}': {e}"
            ) from e

        if not isinstance(data, list) or not all(
            isinstance(v, int) and not isinstance(v, bool) for v in data
        ):
            raise SelectionStoreError(
                f"Selected apps file '{self.path}' must contain a list of app ids."
            )
        return data

    def save(self, app_ids: Iterable[int]) -> list[int]:
        """Overwrites the saved selection."""
        selected = list(dict.fromkeys(int(app_id) for app_id in app_ids))
        temp_path = self.path.with_suffix(".json.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(selected, f)
            os.replace(temp_path, self.path)
        except OSError as e:
            raise SelectionStoreError(
                f"Failed to save selected apps to '{self.path}': {e}"
            ) from e
        log.info(f"Selected [magenta]{len(selected)}[/magenta] apps to prefill!")
        return selected

    def clear(self) -> bool:
        """Removes the saved selection. Returns False if there was nothing to remove."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SelectionStoreError(
                f"Failed to remove selected apps file '{self.path}': {e}"
            ) from e
