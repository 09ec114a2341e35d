"""Local pack store: the on-disk pack tree under the sounds directory.

Layout::

    <root>/<pack-id>/<event-kind>/<sound>[.disabled]
    <root>/<pack-id>/.pack-info.json
    <root>/.active-pack
    <root>/.muted
    <root>/.volume

Every operation returns a plain value or a success flag; filesystem errors
are never raised to the caller.
"""

from __future__ import annotations

import json
import random
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.utils import atomic_write_text, is_within
from .archive import MACOS_METADATA_DIR, validate_single_file
from .models import (
    PACK_INFO_FILE,
    EventKind,
    PackMetadata,
    default_pack_name,
    is_audio_name,
    split_skip,
    with_skip,
)

if TYPE_CHECKING:
    from ..core.config import Config

DEFAULT_PACK_ID = "protoss"
DEFAULT_VOLUME = 0.5


def is_valid_pack_id(pack_id: str) -> bool:
    return (
        bool(pack_id)
        and pack_id == pack_id.strip()
        and not pack_id.startswith(".")
        and "/" not in pack_id
        and "\\" not in pack_id
        and "\0" not in pack_id
    )


class PackStore:
    """Sole reader/writer of the pack tree rooted at ``config.sounds_dir``."""

    def __init__(self, config: Config):
        self.config = config

    @property
    def root(self) -> Path:
        return self.config.sounds_dir

    def pack_dir(self, pack_id: str) -> Path:
        return self.root / pack_id

    def event_dir(self, pack_id: str, event: EventKind) -> Path:
        return self.root / pack_id / event.value

    def has_pack(self, pack_id: str) -> bool:
        return is_valid_pack_id(pack_id) and self.pack_dir(pack_id).is_dir()

    # ── Listing ──────────────────────────────────────────────────────

    def list_installed_pack_ids(self) -> list[str]:
        try:
            children = list(self.root.iterdir())
        except OSError:
            return []
        return sorted(
            c.name
            for c in children
            if not c.name.startswith(".") and c.name != MACOS_METADATA_DIR and c.is_dir()
        )

    def list_sound_files(
        self, pack_id: str, event: EventKind, include_skipped: bool = False
    ) -> list[Path]:
        if not is_valid_pack_id(pack_id):
            return []
        directory = self.event_dir(pack_id, event)
        try:
            children = list(directory.iterdir())
        except OSError:
            return []
        result = []
        for p in children:
            if not is_audio_name(p.name) or not p.is_file():
                continue
            if not include_skipped and split_skip(p.name)[1]:
                continue
            result.append(p)
        return sorted(result)

    def pack_stats(self, pack_id: str) -> tuple[int, int]:
        """(file count, total bytes) over every sound file, skipped included."""
        count = 0
        total = 0
        for event in EventKind:
            for p in self.list_sound_files(pack_id, event, include_skipped=True):
                try:
                    total += p.stat().st_size
                except OSError:
                    continue
                count += 1
        return count, total

    # ── Active pack ──────────────────────────────────────────────────

    def get_active_pack(self) -> str | None:
        try:
            value = self.config.active_pack_file.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            return None
        return value or None

    def set_active_pack(self, pack_id: str) -> bool:
        try:
            atomic_write_text(self.config.active_pack_file, pack_id.strip())
        except OSError:
            return False
        return True

    def clear_active_pack(self) -> bool:
        try:
            self.config.active_pack_file.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            return False
        return True

    def ensure_active_pack(self) -> str | None:
        """Select a pack when none is set: the default pack if present, else the first."""
        current = self.get_active_pack()
        if current is not None:
            return current
        installed = self.list_installed_pack_ids()
        if not installed:
            return None
        choice = DEFAULT_PACK_ID if DEFAULT_PACK_ID in installed else installed[0]
        return choice if self.set_active_pack(choice) else None

    # ── Pack lifecycle ───────────────────────────────────────────────

    def create_empty_pack(self, pack_id: str) -> bool:
        """Create the event directory skeleton. Fails if the id is taken or invalid."""
        if not is_valid_pack_id(pack_id) or self.pack_dir(pack_id).exists():
            return False
        try:
            for event in EventKind:
                self.event_dir(pack_id, event).mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return True

    def delete_pack(self, pack_id: str) -> bool:
        """Remove a pack's whole subtree. Missing packs count as deleted."""
        if not is_valid_pack_id(pack_id):
            return False
        path = self.pack_dir(pack_id)
        try:
            if path.is_symlink():
                path.unlink()
            elif path.exists():
                shutil.rmtree(path)
        except OSError:
            return False
        if self.get_active_pack() == pack_id:
            self.clear_active_pack()
        return True

    # ── Metadata ─────────────────────────────────────────────────────

    def load_metadata(self, pack_id: str) -> PackMetadata:
        if not is_valid_pack_id(pack_id):
            return PackMetadata()
        path = self.pack_dir(pack_id) / PACK_INFO_FILE
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            return PackMetadata()
        if not isinstance(data, dict):
            return PackMetadata()
        return PackMetadata.from_dict(data)

    def save_metadata(self, pack_id: str, metadata: PackMetadata) -> bool:
        """Write metadata as-is. Requires the pack directory to exist."""
        if not self.has_pack(pack_id):
            return False
        path = self.pack_dir(pack_id) / PACK_INFO_FILE
        try:
            atomic_write_text(path, json.dumps(metadata.to_dict(), indent=2) + "\n")
        except OSError:
            return False
        return True

    def edit_metadata(
        self,
        pack_id: str,
        name: str = "",
        description: str = "",
        author: str = "",
        version: str = "",
    ) -> bool:
        """Save user-edited fields, filling a blank name and version with defaults."""
        metadata = PackMetadata(
            name=name.strip() or default_pack_name(pack_id),
            description=description.strip(),
            author=author.strip(),
            version=version.strip() or "1.0",
        )
        return self.save_metadata(pack_id, metadata)

    def update_metadata(self, pack_id: str, **fields: str) -> bool:
        """Merge *fields* into the existing metadata file."""
        current = self.load_metadata(pack_id).to_dict()
        current.update({k: v for k, v in fields.items() if k in current and isinstance(v, str)})
        return self.save_metadata(pack_id, PackMetadata.from_dict(current))

    def get_installed_version(self, pack_id: str) -> str | None:
        return self.load_metadata(pack_id).version or None

    # ── Sound files ──────────────────────────────────────────────────

    def add_sound(self, pack_id: str, event: EventKind, source: Path) -> Path | None:
        """Copy one audio file into an event directory without overwriting."""
        if not self.has_pack(pack_id) or not validate_single_file(source):
            return None
        directory = self.event_dir(pack_id, event)
        base, _ = split_skip(source.name)
        dest = directory / base
        if dest.exists() or (directory / with_skip(base, True)).exists():
            return None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
        except OSError:
            return None
        return dest

    def _owns(self, path: Path) -> bool:
        return path.parent.name in {e.value for e in EventKind} and is_within(path, self.root)

    def remove_sound(self, path: Path) -> bool:
        if not self._owns(path) or not is_audio_name(path.name):
            return False
        try:
            path.unlink()
        except OSError:
            return False
        return True

    def toggle_skip(self, path: Path) -> Path | None:
        """Flip a sound's skipped state by renaming it. Returns the new path."""
        if not self._owns(path) or not is_audio_name(path.name) or not path.is_file():
            return None
        _, skipped = split_skip(path.name)
        target = path.with_name(with_skip(path.name, not skipped))
        if target.exists():
            return None
        try:
            path.rename(target)
        except OSError:
            return None
        return target

    def pick_sound(
        self,
        event: EventKind,
        pack_id: str | None = None,
        rng: random.Random | None = None,
    ) -> Path | None:
        """Random enabled sound for *event*; None if the pack is missing or empty."""
        pack_id = pack_id or self.get_active_pack()
        if not pack_id or not self.has_pack(pack_id):
            return None
        files = self.list_sound_files(pack_id, event)
        if not files:
            return None
        return (rng or random).choice(files)

    # ── Playback flags ───────────────────────────────────────────────

    def is_muted(self) -> bool:
        return self.config.muted_file.exists()

    def set_muted(self, muted: bool) -> bool:
        try:
            if muted:
                self.config.muted_file.parent.mkdir(parents=True, exist_ok=True)
                self.config.muted_file.touch()
            else:
                self.config.muted_file.unlink(missing_ok=True)
        except OSError:
            return False
        return True

    def get_volume(self) -> float:
        try:
            value = float(self.config.volume_file.read_text(encoding="utf-8").strip())
        except (OSError, ValueError, UnicodeDecodeError):
            return DEFAULT_VOLUME
        return max(0.0, min(1.0, value))

    def set_volume(self, volume: float) -> bool:
        volume = max(0.0, min(1.0, volume))
        try:
            atomic_write_text(self.config.volume_file, f"{volume:g}")
        except OSError:
            return False
        return True
