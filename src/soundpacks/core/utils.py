"""Path confinement, atomic file writes, size formatting."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def safe_path(path: str, root: Path) -> Path:
    """Resolve *path* relative to *root*, raising ValueError on traversal."""
    base = root.resolve()
    resolved = (base / path).resolve()
    if base not in resolved.parents and resolved != base:
        raise ValueError(f"Path traversal detected: {path!r} escapes {base}")
    return resolved


def is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to *path* via a sibling temp file and ``os.replace``.

    Readers in other processes see either the old or the new content,
    never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def remove_quietly(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink()
    except OSError:
        pass


def human_size(size: int) -> str:
    """Format bytes to human readable."""
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size) < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{size}{unit}"
        size /= 1024  # type: ignore
    return f"{size:.1f}TB"


def short_path(p: Path) -> str:
    """Return path relative to home directory, using ~ prefix."""
    try:
        rel = p.relative_to(Path.home())
        return f"~/{rel}" if str(rel) != "." else "~"
    except ValueError:
        return str(p)
