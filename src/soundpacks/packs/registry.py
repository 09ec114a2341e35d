"""Registry store: user-added manifest URLs, persisted as a JSON array."""

from __future__ import annotations

import json
from pathlib import Path

from ..core.utils import atomic_write_text


class RegistryStore:
    """Ordered set of extra manifest URLs. Insertion order is merge order."""

    def __init__(self, path: Path):
        self.path = path

    def list(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            return []
        if not isinstance(data, list):
            return []
        urls: list[str] = []
        for item in data:
            if isinstance(item, str) and item not in urls:
                urls.append(item)
        return urls

    def _save(self, urls: list[str]) -> bool:
        try:
            atomic_write_text(self.path, json.dumps(urls, indent=2) + "\n")
        except OSError:
            return False
        return True

    def add(self, url: str) -> bool:
        """Append *url* (trimmed). Returns False when empty, present, or unwritable."""
        url = url.strip()
        urls = self.list()
        if not url or url in urls:
            return False
        urls.append(url)
        return self._save(urls)

    def remove(self, url: str) -> bool:
        """Drop every exact match. Returns True if anything was removed."""
        urls = self.list()
        kept = [u for u in urls if u != url]
        if len(kept) == len(urls):
            return False
        return self._save(kept)
