"""Archive validation: preflight, post-extraction sanitize, single-file checks.

Extraction itself is a separate primitive (``extract_archive``) with no
traversal or symlink protection of its own, so every archive goes through
``preflight`` before it and ``sanitize_pack`` after it.
"""

from __future__ import annotations

import os
import posixpath
import shutil
import stat
import zipfile
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from ..core.config import ArchiveLimits
from ..core.utils import is_within, safe_path
from .models import EVENT_DIRS, PACK_INFO_FILE, is_audio_name

console = Console(stderr=True)

# Resource-fork folder added by the macOS archiver; never a pack.
MACOS_METADATA_DIR = "__MACOSX"


@dataclass
class ValidationError:
    """First unsafe property found in an archive.

    ``kind`` is one of: corrupt, too-many-entries, traversal, reserved,
    loose-file, symlink, file-too-large, archive-too-large.
    """

    kind: str
    message: str
    entry: str = ""

    def __str__(self) -> str:
        return f"{self.message}: {self.entry}" if self.entry else self.message


# ── Preflight ───────────────────────────────────────────────────────


def _is_symlink_entry(info: zipfile.ZipInfo) -> bool:
    mode = info.external_attr >> 16
    return stat.S_ISLNK(mode)


def _escapes_root(name: str, root: Path) -> bool:
    if name.startswith(("/", "\\")) or (len(name) > 1 and name[1] == ":"):
        return True
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if normalized == ".." or normalized.startswith("../"):
        return True
    try:
        safe_path(normalized, root)
    except ValueError:
        return True
    return False


def preflight(
    archive: Path,
    root: Path,
    limits: ArchiveLimits | None = None,
) -> ValidationError | None:
    """Inspect *archive*'s entry list without extracting anything.

    Returns the first violation found, or None if the archive is safe to
    extract into *root*.
    """
    limits = limits or ArchiveLimits()
    try:
        with zipfile.ZipFile(archive) as zf:
            infos = zf.infolist()
    except (zipfile.BadZipFile, OSError, ValueError) as e:
        return ValidationError("corrupt", f"not a readable zip archive ({e})")

    if len(infos) > limits.max_entries:
        return ValidationError(
            "too-many-entries",
            f"archive has {len(infos)} entries (limit {limits.max_entries})",
        )

    total = 0
    for info in infos:
        name = info.filename
        if _escapes_root(name, root):
            return ValidationError("traversal", "entry escapes extraction root", name)
        top, _, rest = posixpath.normpath(name.replace("\\", "/")).partition("/")
        if top.startswith("."):
            return ValidationError("reserved", "entry targets a reserved store path", name)
        if not rest and not info.is_dir():
            return ValidationError("loose-file", "entry is not inside a pack directory", name)
        if _is_symlink_entry(info):
            return ValidationError("symlink", "symlink entries are not allowed", name)
        if info.file_size > limits.max_file_bytes:
            return ValidationError(
                "file-too-large",
                f"entry expands to {info.file_size} bytes (limit {limits.max_file_bytes})",
                name,
            )
        total += info.file_size
        if total > limits.max_total_bytes:
            return ValidationError(
                "archive-too-large",
                f"archive expands to more than {limits.max_total_bytes} bytes",
            )
    return None


def archive_pack_ids(archive: Path) -> list[str]:
    """Top-level directory names an archive will create, sorted."""
    try:
        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
    except (zipfile.BadZipFile, OSError, ValueError):
        return []
    ids: set[str] = set()
    for name in names:
        parts = posixpath.normpath(name.replace("\\", "/")).split("/")
        if len(parts) > 1 or name.endswith("/"):
            top = parts[0]
            if top and not top.startswith(".") and top not in ("..", MACOS_METADATA_DIR):
                ids.add(top)
    return sorted(ids)


# ── Sanitize ────────────────────────────────────────────────────────


def _remove(path: Path) -> bool:
    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)
    except OSError as e:
        console.print(f"[yellow]warning: could not remove {path}: {e}[/yellow]")
        return False
    return True


def _sanitize_event_dir(event_dir: Path) -> int:
    removed = 0
    for dirpath, dirnames, filenames in os.walk(event_dir, topdown=True, followlinks=False):
        base = Path(dirpath)
        for d in list(dirnames):
            if (base / d).is_symlink():
                dirnames.remove(d)
                removed += _remove(base / d)
        for f in filenames:
            p = base / f
            if p.is_symlink() or not is_audio_name(f):
                removed += _remove(p)
    return removed


def sanitize_pack(pack_dir: Path) -> int:
    """Strip everything that is not an event directory of audio files.

    Returns the number of removed items. Never raises; an item that cannot
    be removed is skipped.
    """
    if pack_dir.is_symlink() or not pack_dir.is_dir():
        return 0
    removed = 0
    try:
        children = sorted(pack_dir.iterdir())
    except OSError:
        return 0
    for child in children:
        if child.is_symlink():
            removed += _remove(child)
        elif child.name in EVENT_DIRS and child.is_dir():
            removed += _sanitize_event_dir(child)
        elif child.name == PACK_INFO_FILE and child.is_file():
            continue
        else:
            removed += _remove(child)
    return removed


# ── Single file ─────────────────────────────────────────────────────


def validate_single_file(path: Path, allowed_roots: list[Path] | None = None) -> bool:
    """Check a file offered for direct import into a pack.

    Symlinks are accepted only when they resolve inside one of
    *allowed_roots*.
    """
    if not is_audio_name(path.name):
        return False
    if path.is_symlink():
        if not allowed_roots or not any(is_within(path, r) for r in allowed_roots):
            return False
    if not path.is_file():
        return False
    return os.access(path, os.R_OK)


# ── Zip primitives ──────────────────────────────────────────────────


def extract_archive(archive: Path, dest: Path) -> bool:
    """Extract *archive* into *dest*, overwriting existing files. Returns success.

    macOS resource-fork entries are left out.
    """
    try:
        dest.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive) as zf:
            members = [
                info
                for info in zf.infolist()
                if info.filename.replace("\\", "/").split("/", 1)[0] != MACOS_METADATA_DIR
            ]
            zf.extractall(dest, members=members)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, RuntimeError, ValueError):
        return False
    return True


def create_archive(source_dir: Path, dest: Path) -> bool:
    """Zip *source_dir* so its own name is the archive's single top-level entry."""
    prefix = source_dir.name
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.write(source_dir, prefix + "/")
            for dirpath, dirnames, filenames in os.walk(source_dir, followlinks=False):
                dirnames.sort()
                base = Path(dirpath)
                rel = base.relative_to(source_dir).as_posix()
                arc_dir = prefix if rel == "." else f"{prefix}/{rel}"
                for d in dirnames:
                    if not (base / d).is_symlink():
                        zf.write(base / d, f"{arc_dir}/{d}/")
                for f in sorted(filenames):
                    p = base / f
                    if p.is_symlink() or not p.is_file():
                        continue
                    zf.write(p, f"{arc_dir}/{f}")
    except (OSError, ValueError, zipfile.LargeZipFile):
        try:
            dest.unlink()
        except OSError:
            pass
        return False
    return True
