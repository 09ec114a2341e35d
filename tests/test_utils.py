"""Tests for utils: safe_path, is_within, atomic_write_text, human_size, short_path."""

from pathlib import Path
from unittest.mock import patch

import pytest

from soundpacks.core.utils import (
    atomic_write_text,
    human_size,
    is_within,
    remove_quietly,
    safe_path,
    short_path,
)


class TestSafePath:
    def test_resolves_nested(self, tmp_path):
        result = safe_path("retro/stop/a.wav", root=tmp_path)
        assert result == (tmp_path / "retro" / "stop" / "a.wav").resolve()

    def test_blocks_traversal(self, tmp_path):
        with pytest.raises(ValueError, match="traversal"):
            safe_path("../../etc/passwd", root=tmp_path)

    def test_blocks_absolute_outside(self, tmp_path):
        with pytest.raises(ValueError, match="traversal"):
            safe_path("/etc/passwd", root=tmp_path)

    def test_allows_root_itself(self, tmp_path):
        assert safe_path(".", root=tmp_path) == tmp_path.resolve()

    def test_dot_dot_within_root(self, tmp_path):
        result = safe_path("retro/../other/a.wav", root=tmp_path)
        assert result == (tmp_path / "other" / "a.wav").resolve()

    def test_symlink_out_of_root(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(tmp_path)
        with pytest.raises(ValueError):
            safe_path("link/secret", root=root)


class TestIsWithin:
    def test_inside(self, tmp_path):
        assert is_within(tmp_path / "a" / "b", tmp_path)

    def test_outside(self, tmp_path):
        assert not is_within(tmp_path.parent, tmp_path)


class TestAtomicWrite:
    def test_creates_parents(self, tmp_path):
        target = tmp_path / "deep" / "dir" / ".active-pack"
        atomic_write_text(target, "retro")
        assert target.read_text() == "retro"

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / ".volume"
        target.write_text("0.5")
        atomic_write_text(target, "0.8")
        assert target.read_text() == "0.8"

    def test_failed_write_keeps_old_content(self, tmp_path):
        target = tmp_path / ".volume"
        target.write_text("0.5")
        with patch("soundpacks.core.utils.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write_text(target, "0.8")
        assert target.read_text() == "0.5"
        assert [p.name for p in tmp_path.iterdir()] == [".volume"]


class TestRemoveQuietly:
    def test_missing_and_none(self, tmp_path):
        remove_quietly(None)
        remove_quietly(tmp_path / "nope")

    def test_removes(self, tmp_path):
        p = tmp_path / "x.zip"
        p.write_bytes(b"")
        remove_quietly(p)
        assert not p.exists()


class TestHumanSize:
    def test_bytes(self):
        assert human_size(0) == "0B"
        assert human_size(512) == "512B"

    def test_kb(self):
        assert human_size(1536) == "1.5KB"

    def test_mb(self):
        assert "MB" in human_size(50 * 1024 * 1024)

    def test_gb(self):
        assert "GB" in human_size(1024**3)


class TestShortPath:
    def test_under_home(self):
        assert short_path(Path.home() / ".claude" / "sounds") == "~/.claude/sounds"

    def test_elsewhere(self, tmp_path):
        if is_within(tmp_path, Path.home()):
            pytest.skip("tmp is under home")
        assert short_path(tmp_path) == str(tmp_path)
