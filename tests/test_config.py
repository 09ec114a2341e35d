"""Tests for config: defaults, settings file, env overrides."""

import json
import os
from pathlib import Path
from unittest.mock import patch

from soundpacks.core.config import (
    COMMUNITY_MANIFEST_URL,
    MANIFEST_URL,
    ArchiveLimits,
    Config,
    _apply_settings,
    load_config,
)


class TestConfigDefaults:
    def test_default_sounds_dir(self):
        c = Config()
        assert c.sounds_dir == Path.home() / ".claude" / "sounds"

    def test_default_urls(self):
        c = Config()
        assert c.manifest_url == MANIFEST_URL
        assert c.community_manifest_url == COMMUNITY_MANIFEST_URL

    def test_derived_paths(self, tmp_path):
        c = Config(sounds_dir=tmp_path)
        assert c.active_pack_file == tmp_path / ".active-pack"
        assert c.custom_manifests_file == tmp_path / ".custom-manifests.json"
        assert c.muted_file == tmp_path / ".muted"
        assert c.volume_file == tmp_path / ".volume"

    def test_default_limits(self):
        limits = ArchiveLimits()
        assert limits.max_entries > 0
        assert limits.max_file_bytes <= limits.max_total_bytes


class TestApplySettings:
    def test_settings_applied(self, tmp_path):
        path = tmp_path / ".settings.json"
        path.write_text(
            json.dumps(
                {
                    "manifestUrl": "https://example.com/m.json",
                    "fetchTimeout": 3,
                    "maxFileBytes": 1024,
                }
            )
        )
        c = Config(sounds_dir=tmp_path)
        _apply_settings(c, path)
        assert c.manifest_url == "https://example.com/m.json"
        assert c.fetch_timeout == 3.0
        assert c.limits.max_file_bytes == 1024

    def test_invalid_values_ignored(self, tmp_path):
        path = tmp_path / ".settings.json"
        path.write_text(json.dumps({"fetchTimeout": -1, "maxEntries": "many"}))
        c = Config(sounds_dir=tmp_path)
        _apply_settings(c, path)
        assert c.fetch_timeout == 15.0
        assert c.limits.max_entries == ArchiveLimits().max_entries

    def test_malformed_file_ignored(self, tmp_path):
        path = tmp_path / ".settings.json"
        path.write_text("{oops")
        c = Config(sounds_dir=tmp_path)
        _apply_settings(c, path)
        assert c.manifest_url == MANIFEST_URL


class TestLoadConfig:
    def test_explicit_dir_wins(self, tmp_path):
        with patch.dict(os.environ, {"SOUNDPACKS_DIR": str(tmp_path / "env")}):
            c = load_config(sounds_dir=tmp_path / "cli")
        assert c.sounds_dir == tmp_path / "cli"

    def test_env_dir(self, tmp_path):
        with patch.dict(os.environ, {"SOUNDPACKS_DIR": str(tmp_path / "env")}):
            c = load_config()
        assert c.sounds_dir == tmp_path / "env"

    def test_env_url_overrides_settings(self, tmp_path):
        (tmp_path / ".settings.json").write_text(json.dumps({"manifestUrl": "https://s/m.json"}))
        with patch.dict(os.environ, {"SOUNDPACKS_MANIFEST_URL": "https://e/m.json"}):
            c = load_config(sounds_dir=tmp_path)
        assert c.manifest_url == "https://e/m.json"

    def test_settings_read_from_sounds_dir(self, tmp_path):
        (tmp_path / ".settings.json").write_text(json.dumps({"downloadTimeout": 5}))
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("SOUNDPACKS_MANIFEST_URL", None)
            c = load_config(sounds_dir=tmp_path, verbose=True)
        assert c.download_timeout == 5.0
        assert c.verbose
