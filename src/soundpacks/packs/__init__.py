"""Packs: local store, archive validation, manifests, registry, installer."""

from .archive import ValidationError, preflight, sanitize_pack, validate_single_file
from .installer import (
    CancelToken,
    Installer,
    InstallOutcome,
    InstallResult,
    InstallState,
)
from .manifest import ManifestClient, fallback_manifest, merge_manifests, parse_manifest
from .models import (
    AUDIO_EXTENSIONS,
    EventKind,
    Manifest,
    ManifestEntry,
    PackListing,
    PackMetadata,
    split_skip,
)
from .registry import RegistryStore
from .store import PackStore

__all__ = [
    "AUDIO_EXTENSIONS",
    "CancelToken",
    "EventKind",
    "InstallOutcome",
    "InstallResult",
    "InstallState",
    "Installer",
    "Manifest",
    "ManifestClient",
    "ManifestEntry",
    "PackListing",
    "PackMetadata",
    "PackStore",
    "RegistryStore",
    "ValidationError",
    "fallback_manifest",
    "merge_manifests",
    "parse_manifest",
    "preflight",
    "sanitize_pack",
    "split_skip",
    "validate_single_file",
]
