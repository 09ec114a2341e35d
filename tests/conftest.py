"""Shared fixtures: an isolated sounds directory and a zip builder."""

import stat
import zipfile

import pytest

from soundpacks.core.config import Config
from soundpacks.packs.store import PackStore


@pytest.fixture
def config(tmp_path):
    return Config(sounds_dir=tmp_path / "sounds")


@pytest.fixture
def store(config):
    return PackStore(config)


@pytest.fixture
def make_zip(tmp_path):
    """Build a zip from {name: bytes}; names ending in '/' become directory entries.

    ``symlinks`` maps entry names to link targets.
    """

    def _make(files, name="pack.zip", symlinks=None):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            for entry, data in files.items():
                if entry.endswith("/"):
                    zf.writestr(zipfile.ZipInfo(entry), b"")
                else:
                    zf.writestr(entry, data)
            for entry, target in (symlinks or {}).items():
                info = zipfile.ZipInfo(entry)
                info.create_system = 3
                info.external_attr = (stat.S_IFLNK | 0o777) << 16
                zf.writestr(info, target)
        return path

    return _make
