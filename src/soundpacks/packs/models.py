"""Pack data models: EventKind, ManifestEntry, Manifest, PackMetadata, PackListing."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class EventKind(str, Enum):
    SESSION_START = "session-start"
    PROMPT_SUBMIT = "prompt-submit"
    NOTIFICATION = "notification"
    STOP = "stop"
    SESSION_END = "session-end"
    SUBAGENT_STOP = "subagent-stop"
    TOOL_FAILURE = "tool-failure"

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ").title()

    @property
    def hook_event_name(self) -> str:
        """Trigger name the hook script is registered under."""
        return _HOOK_EVENT_NAMES[self]


_HOOK_EVENT_NAMES = {
    EventKind.SESSION_START: "SessionStart",
    EventKind.PROMPT_SUBMIT: "UserPromptSubmit",
    EventKind.NOTIFICATION: "Notification",
    EventKind.STOP: "Stop",
    EventKind.SESSION_END: "SessionEnd",
    EventKind.SUBAGENT_STOP: "SubagentStop",
    EventKind.TOOL_FAILURE: "PostToolUseFailure",
}

EVENT_DIRS = frozenset(e.value for e in EventKind)

AUDIO_EXTENSIONS = frozenset({"wav", "mp3", "aiff", "m4a", "ogg", "aac"})

SKIP_SUFFIX = ".disabled"

PACK_INFO_FILE = ".pack-info.json"


# ── Skip suffix ─────────────────────────────────────────────────────


def split_skip(filename: str) -> tuple[str, bool]:
    """Split a sound filename into (base name, skipped).

    ``boom.wav.disabled`` -> ``("boom.wav", True)``. The skip suffix is
    only recognised as the outermost suffix.
    """
    if filename.endswith(SKIP_SUFFIX) and len(filename) > len(SKIP_SUFFIX):
        return filename[: -len(SKIP_SUFFIX)], True
    return filename, False


def with_skip(filename: str, skipped: bool) -> str:
    base, _ = split_skip(filename)
    return base + SKIP_SUFFIX if skipped else base


def audio_extension(filename: str) -> str:
    """Lower-cased extension of the base name, ignoring a trailing skip suffix."""
    base, _ = split_skip(filename)
    if "." not in base.lstrip("."):
        return ""
    return base.rsplit(".", 1)[1].lower()


def is_audio_name(filename: str) -> bool:
    return audio_extension(filename) in AUDIO_EXTENSIONS


def parse_event(value: str) -> EventKind | None:
    try:
        return EventKind(value)
    except ValueError:
        return None


# ── Manifest ────────────────────────────────────────────────────────


@dataclass
class ManifestEntry:
    """A pack listing inside a remote manifest."""

    id: str
    name: str = ""
    description: str = ""
    version: str = ""
    author: str = ""
    download_url: str | None = None
    size: str = ""
    file_count: int = 0
    preview_url: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Manifest:
    """A parsed manifest document: ``{"version": ..., "packs": [...]}``."""

    format_version: str = "1"
    entries: list[ManifestEntry] = field(default_factory=list)

    def get(self, pack_id: str) -> ManifestEntry | None:
        for entry in self.entries:
            if entry.id == pack_id:
                return entry
        return None

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.entries]

    def to_dict(self) -> dict:
        return {"version": self.format_version, "packs": [e.to_dict() for e in self.entries]}


# ── Local pack info ─────────────────────────────────────────────────


@dataclass
class PackMetadata:
    """Contents of a pack's ``.pack-info.json``. Empty strings mean unset."""

    name: str = ""
    description: str = ""
    author: str = ""
    version: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> PackMetadata:
        def _str(key: str) -> str:
            val = data.get(key, "")
            return val if isinstance(val, str) else ""

        return cls(
            name=_str("name"),
            description=_str("description"),
            author=_str("author"),
            version=_str("version"),
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    def is_empty(self) -> bool:
        return not any((self.name, self.description, self.author, self.version))


@dataclass
class PackListing:
    """One row of the pack browser: installed state joined with the manifest."""

    id: str
    name: str
    description: str = ""
    author: str = ""
    version: str = ""
    installed: bool = False
    active: bool = False
    update_available: bool = False
    installed_version: str = ""
    entry: ManifestEntry | None = None


def default_pack_name(pack_id: str) -> str:
    return pack_id.replace("-", " ").replace("_", " ").title()
