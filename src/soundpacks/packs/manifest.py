"""Manifest client: fetch, parse and merge remote pack manifests.

Manifests are advisory. Every fetch failure degrades to ``None`` (or to the
built-in fallback for the primary source) so callers can always fall back
to the installed packs.
"""

from __future__ import annotations

import http.client
import json
import threading
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

from .models import Manifest, ManifestEntry
from .store import is_valid_pack_id

if TYPE_CHECKING:
    from ..core.config import Config
    from .registry import RegistryStore

USER_AGENT = "soundpacks/0.1"
MAX_MANIFEST_BYTES = 2 * 1024 * 1024


def fallback_manifest() -> Manifest:
    """Built-in single-pack manifest used when the primary source is unreachable."""
    return Manifest(
        format_version="1",
        entries=[
            ManifestEntry(
                id="protoss",
                name="StarCraft Protoss",
                description="Protoss voice lines from StarCraft",
                version="1.0",
                author="Blizzard Entertainment",
                download_url=(
                    "https://github.com/michalarent/claude-sounds/releases/download/v2.0/protoss.zip"
                ),
                size="2.1 MB",
                file_count=42,
                preview_url=None,
            )
        ],
    )


# ── Parse ───────────────────────────────────────────────────────────


def _opt_str(val) -> str | None:
    return val if isinstance(val, str) and val else None


def _parse_entry(data) -> ManifestEntry | None:
    if not isinstance(data, dict):
        return None
    pack_id = data.get("id", "")
    if not isinstance(pack_id, str) or not is_valid_pack_id(pack_id):
        return None

    def _str(key: str) -> str:
        val = data.get(key, "")
        if isinstance(val, (int, float)) and not isinstance(val, bool):
            return str(val)
        return val if isinstance(val, str) else ""

    file_count = data.get("file_count", 0)
    if not isinstance(file_count, int) or isinstance(file_count, bool):
        file_count = 0

    return ManifestEntry(
        id=pack_id,
        name=_str("name") or pack_id,
        description=_str("description"),
        version=_str("version"),
        author=_str("author"),
        download_url=_opt_str(data.get("download_url")),
        size=_str("size"),
        file_count=file_count,
        preview_url=_opt_str(data.get("preview_url")),
    )


def parse_manifest(raw: bytes | str) -> Manifest | None:
    """Parse a manifest document. Returns None if it is not a manifest at all."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError, RecursionError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("packs"), list):
        return None
    version = data.get("version", "1")
    entries = [e for e in (_parse_entry(p) for p in data["packs"]) if e is not None]
    return Manifest(format_version=str(version), entries=entries)


# ── Merge ───────────────────────────────────────────────────────────


def merge_manifests(base: Manifest, layers: list[Manifest | None]) -> Manifest:
    """Layer manifests over *base*; a later entry replaces any earlier one with its id.

    Overridden entries move to the position of the overriding layer.
    """
    merged: dict[str, ManifestEntry] = {}
    for manifest in [base, *layers]:
        if manifest is None:
            continue
        for entry in manifest.entries:
            merged.pop(entry.id, None)
            merged[entry.id] = entry
    return Manifest(format_version=base.format_version, entries=list(merged.values()))


# ── Client ──────────────────────────────────────────────────────────


class ManifestClient:
    """Fetches the primary, community and user-registered manifests."""

    def __init__(self, config: Config, registry: RegistryStore):
        self.config = config
        self.registry = registry

    def _read(self, url: str) -> bytes:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        with urllib.request.urlopen(req, timeout=self.config.fetch_timeout) as resp:
            return resp.read(MAX_MANIFEST_BYTES + 1)

    def fetch_single(self, url: str) -> Manifest | None:
        if not url:
            return None
        try:
            raw = self._read(url)
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError):
            return None
        if len(raw) > MAX_MANIFEST_BYTES:
            return None
        return parse_manifest(raw)

    def fetch_primary(self) -> Manifest:
        return self.fetch_single(self.config.manifest_url) or fallback_manifest()

    def sources(self) -> list[str]:
        """Override layers in merge order: community first, then registry order."""
        return [self.config.community_manifest_url, *self.registry.list()]

    def fetch_merged(self) -> Manifest:
        """Fetch every source concurrently and merge them over the primary.

        Each fetch carries its own timeout; the result is ready once every
        source has either answered or failed.
        """
        layer_urls = self.sources()
        results: dict[int, Manifest | None] = {}
        lock = threading.Lock()

        def _collect(index: int, url: str) -> None:
            manifest = self.fetch_single(url)
            with lock:
                results[index] = manifest

        with ThreadPoolExecutor(max_workers=len(layer_urls) + 1) as pool:
            primary_future = pool.submit(self.fetch_primary)
            futures = [pool.submit(_collect, i, url) for i, url in enumerate(layer_urls)]
            wait([primary_future, *futures])

        primary = primary_future.result()
        layers = [results.get(i) for i in range(len(layer_urls))]
        return merge_manifests(primary, layers)
