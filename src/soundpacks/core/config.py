"""Configuration: env, paths, manifest sources, archive limits."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

MANIFEST_URL = "https://raw.githubusercontent.com/michalarent/claude-sounds/main/sound-packs.json"
COMMUNITY_MANIFEST_URL = (
    "https://raw.githubusercontent.com/michalarent/claude-sounds/main/community/manifest.json"
)

MiB = 1024 * 1024


@dataclass
class ArchiveLimits:
    """Caps applied to an archive's entry list before anything is extracted."""

    max_entries: int = 2000
    max_file_bytes: int = 50 * MiB
    max_total_bytes: int = 500 * MiB


@dataclass
class Config:
    sounds_dir: Path = field(default_factory=lambda: Path.home() / ".claude" / "sounds")
    manifest_url: str = MANIFEST_URL
    community_manifest_url: str = COMMUNITY_MANIFEST_URL
    fetch_timeout: float = 15.0
    download_timeout: float = 60.0
    limits: ArchiveLimits = field(default_factory=ArchiveLimits)
    verbose: bool = False

    @property
    def active_pack_file(self) -> Path:
        return self.sounds_dir / ".active-pack"

    @property
    def custom_manifests_file(self) -> Path:
        return self.sounds_dir / ".custom-manifests.json"

    @property
    def muted_file(self) -> Path:
        return self.sounds_dir / ".muted"

    @property
    def volume_file(self) -> Path:
        return self.sounds_dir / ".volume"

    @property
    def settings_file(self) -> Path:
        return self.sounds_dir / ".settings.json"


def _apply_settings(config: Config, path: Path) -> None:
    """Apply a single settings file to config. Unreadable files are ignored."""
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return
    if not isinstance(data, dict):
        return

    if isinstance(data.get("manifestUrl"), str):
        config.manifest_url = data["manifestUrl"]
    if isinstance(data.get("communityManifestUrl"), str):
        config.community_manifest_url = data["communityManifestUrl"]

    for key, attr in (("fetchTimeout", "fetch_timeout"), ("downloadTimeout", "download_timeout")):
        val = data.get(key)
        if isinstance(val, (int, float)) and val > 0:
            setattr(config, attr, float(val))

    for key, attr in (
        ("maxEntries", "max_entries"),
        ("maxFileBytes", "max_file_bytes"),
        ("maxTotalBytes", "max_total_bytes"),
    ):
        val = data.get(key)
        if isinstance(val, int) and not isinstance(val, bool) and val > 0:
            setattr(config.limits, attr, val)


def load_config(
    sounds_dir: str | Path | None = None,
    verbose: bool = False,
) -> Config:
    """Load config with priority: CLI args > env > .env > .settings.json > defaults."""
    load_dotenv()

    config = Config()
    config.verbose = verbose

    if env_dir := os.getenv("SOUNDPACKS_DIR"):
        config.sounds_dir = Path(env_dir).expanduser()
    if sounds_dir:
        config.sounds_dir = Path(sounds_dir).expanduser()

    _apply_settings(config, config.settings_file)

    if env_url := os.getenv("SOUNDPACKS_MANIFEST_URL"):
        config.manifest_url = env_url
    if env_community := os.getenv("SOUNDPACKS_COMMUNITY_URL"):
        config.community_manifest_url = env_community

    return config
