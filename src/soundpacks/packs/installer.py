"""Pack installer: download, validate, extract, sanitize, record version; uninstall; export.

One install runs strictly in order::

    DOWNLOADING -> VALIDATING -> EXTRACTING -> SANITIZING -> METADATA_WRITE -> DONE

and may end in FAILED from any step. The temporary archive is removed on
every exit path. Local zips skip DOWNLOADING and are copied first, so the
caller's file is never touched.
"""

from __future__ import annotations

import http.client
import shutil
import tempfile
import threading
import urllib.error
import urllib.request
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from rich.console import Console

from ..core.utils import remove_quietly
from .archive import (
    ValidationError,
    archive_pack_ids,
    create_archive,
    extract_archive,
    preflight,
    sanitize_pack,
)
from .manifest import USER_AGENT
from .models import Manifest, ManifestEntry, PackListing, default_pack_name

if TYPE_CHECKING:
    from ..core.config import Config
    from .store import PackStore

console = Console(stderr=True)

CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[float], None]
StateCallback = Callable[["InstallState"], None]


class InstallState(str, Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    SANITIZING = "sanitizing"
    METADATA_WRITE = "metadata-write"
    DONE = "done"
    FAILED = "failed"


class InstallOutcome(str, Enum):
    INSTALLED = "installed"
    DOWNLOAD_FAILED = "download-failed"
    INVALID_ARCHIVE = "invalid-archive"
    EXTRACTION_FAILED = "extraction-failed"
    UP_TO_DATE = "up-to-date"
    CANCELLED = "cancelled"


@dataclass
class InstallResult:
    outcome: InstallOutcome
    pack_ids: list[str] = field(default_factory=list)
    message: str = ""
    failed_at: InstallState | None = None
    validation: ValidationError | None = None
    removed: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome in (InstallOutcome.INSTALLED, InstallOutcome.UP_TO_DATE)


class CancelToken:
    """Set by the caller to stop an in-flight download at the next chunk."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class DownloadError(Exception):
    pass


class DownloadCancelled(Exception):
    pass


class Installer:
    """Turns remote or local zips into installed packs, and packs back into zips."""

    def __init__(
        self,
        config: Config,
        store: PackStore,
        extract: Callable[[Path, Path], bool] = extract_archive,
        compress: Callable[[Path, Path], bool] = create_archive,
        max_workers: int = 4,
    ):
        self.config = config
        self.store = store
        self._extract = extract
        self._compress = compress
        self._max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    # ── Download ─────────────────────────────────────────────────────

    def _open(self, url: str):
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        return urllib.request.urlopen(req, timeout=self.config.download_timeout)

    def _download(
        self,
        url: str,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> Path:
        """Stream *url* into a temp file and return its path.

        Raises DownloadError or DownloadCancelled; the temp file is gone in
        both cases.
        """
        fd, name = tempfile.mkstemp(prefix="soundpack-", suffix=".zip")
        tmp = Path(name)
        try:
            with open(fd, "wb") as out:
                if cancel and cancel.cancelled:
                    raise DownloadCancelled()
                with self._open(url) as resp:
                    try:
                        total = int(resp.headers.get("Content-Length") or 0)
                    except ValueError:
                        total = 0
                    written = 0
                    while True:
                        if cancel and cancel.cancelled:
                            raise DownloadCancelled()
                        chunk = resp.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
                        written += len(chunk)
                        if progress and total > 0:
                            progress(min(1.0, written / total))
        except DownloadCancelled:
            remove_quietly(tmp)
            raise
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            remove_quietly(tmp)
            raise DownloadError(str(e)) from e
        except BaseException:
            remove_quietly(tmp)
            raise
        return tmp

    # ── Pipeline ─────────────────────────────────────────────────────

    def _run_pipeline(
        self,
        archive: Path,
        entry: ManifestEntry | None = None,
        on_state: StateCallback | None = None,
    ) -> InstallResult:
        def _enter(state: InstallState) -> None:
            if on_state:
                on_state(state)

        def _fail(outcome: InstallOutcome, at: InstallState, message: str, **kw) -> InstallResult:
            _enter(InstallState.FAILED)
            return InstallResult(outcome=outcome, failed_at=at, message=message, **kw)

        root = self.store.root
        _enter(InstallState.VALIDATING)
        error = preflight(archive, root, self.config.limits)
        if error is not None:
            return _fail(
                InstallOutcome.INVALID_ARCHIVE,
                InstallState.VALIDATING,
                str(error),
                validation=error,
            )
        pack_ids = archive_pack_ids(archive)

        _enter(InstallState.EXTRACTING)
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return _fail(InstallOutcome.EXTRACTION_FAILED, InstallState.EXTRACTING, str(e))
        if not self._extract(archive, root):
            return _fail(
                InstallOutcome.EXTRACTION_FAILED,
                InstallState.EXTRACTING,
                f"could not extract {archive.name}",
            )

        # One archive may carry several packs, and earlier installs may
        # predate sanitization, so every pack directory is swept.
        _enter(InstallState.SANITIZING)
        removed = 0
        for pack_id in self.store.list_installed_pack_ids():
            removed += sanitize_pack(self.store.pack_dir(pack_id))
        if removed and self.config.verbose:
            console.print(f"[dim]removed {removed} disallowed item(s) from the pack tree[/dim]")

        _enter(InstallState.METADATA_WRITE)
        if entry is not None:
            self._record_version(entry, pack_ids)

        _enter(InstallState.DONE)
        return InstallResult(outcome=InstallOutcome.INSTALLED, pack_ids=pack_ids, removed=removed)

    def _record_version(self, entry: ManifestEntry, pack_ids: list[str]) -> None:
        if entry.id not in pack_ids or not self.store.has_pack(entry.id):
            console.print(
                f"[yellow]warning: archive for {entry.id} did not contain a "
                f"{entry.id}/ directory; version not recorded[/yellow]"
            )
            return
        current = self.store.load_metadata(entry.id)
        fields = {"version": entry.version}
        if not current.name:
            fields["name"] = entry.name
        if not current.description:
            fields["description"] = entry.description
        if not current.author:
            fields["author"] = entry.author
        if not self.store.update_metadata(entry.id, **fields):
            console.print(f"[yellow]warning: could not record version for {entry.id}[/yellow]")

    # ── Install ──────────────────────────────────────────────────────

    def install(
        self,
        entry: ManifestEntry,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        force: bool = False,
        on_state: StateCallback | None = None,
    ) -> InstallResult:
        """Install or update a pack advertised in a manifest."""
        if not force and self.store.has_pack(entry.id) and not self.update_available(entry):
            return InstallResult(
                outcome=InstallOutcome.UP_TO_DATE,
                pack_ids=[entry.id],
                message=f"{entry.id} is already at {entry.version or 'the latest version'}",
            )
        if not entry.download_url:
            return InstallResult(
                outcome=InstallOutcome.DOWNLOAD_FAILED,
                failed_at=InstallState.DOWNLOADING,
                message=f"{entry.id} has no download URL",
            )
        return self._install_remote(entry.download_url, entry, progress, cancel, on_state)

    def install_url(
        self,
        url: str,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
        on_state: StateCallback | None = None,
    ) -> InstallResult:
        """Install whatever pack(s) a zip at *url* contains."""
        return self._install_remote(url.strip(), None, progress, cancel, on_state)

    def _install_remote(
        self,
        url: str,
        entry: ManifestEntry | None,
        progress: ProgressCallback | None,
        cancel: CancelToken | None,
        on_state: StateCallback | None,
    ) -> InstallResult:
        if on_state:
            on_state(InstallState.DOWNLOADING)
        try:
            tmp = self._download(url, progress, cancel)
        except DownloadCancelled:
            if on_state:
                on_state(InstallState.FAILED)
            return InstallResult(
                outcome=InstallOutcome.CANCELLED,
                failed_at=InstallState.DOWNLOADING,
                message="download cancelled",
            )
        except DownloadError as e:
            if on_state:
                on_state(InstallState.FAILED)
            return InstallResult(
                outcome=InstallOutcome.DOWNLOAD_FAILED,
                failed_at=InstallState.DOWNLOADING,
                message=str(e),
            )
        try:
            return self._run_pipeline(tmp, entry, on_state)
        finally:
            remove_quietly(tmp)

    def install_zip(self, path: Path, on_state: StateCallback | None = None) -> InstallResult:
        """Install from a local zip; only a private copy is consumed."""
        fd, name = tempfile.mkstemp(prefix="soundpack-", suffix=".zip")
        tmp = Path(name)
        try:
            try:
                with open(fd, "wb") as out, open(path, "rb") as src:
                    shutil.copyfileobj(src, out)
            except OSError as e:
                if on_state:
                    on_state(InstallState.FAILED)
                return InstallResult(
                    outcome=InstallOutcome.INVALID_ARCHIVE,
                    failed_at=InstallState.VALIDATING,
                    message=f"could not read {path}: {e}",
                )
            return self._run_pipeline(tmp, None, on_state)
        finally:
            remove_quietly(tmp)

    def update_all(
        self,
        manifest: Manifest,
        progress: Callable[[str, float], None] | None = None,
    ) -> dict[str, InstallResult]:
        """Install every pack whose advertised version differs from the local one."""
        results: dict[str, InstallResult] = {}
        for pack_id in self.updates_available(manifest):
            entry = manifest.get(pack_id)
            if entry is None:
                continue
            cb = (lambda f, _id=pack_id: progress(_id, f)) if progress else None
            results[pack_id] = self.install(entry, progress=cb)
        return results

    # ── Uninstall / export ───────────────────────────────────────────

    def uninstall(self, pack_id: str) -> bool:
        """Remove a pack. Uninstalling a pack that is not there succeeds."""
        return self.store.delete_pack(pack_id)

    def export(self, pack_id: str, dest: Path) -> bool:
        """Zip a pack so that installing the zip recreates the same pack."""
        if not self.store.has_pack(pack_id):
            return False
        return self._compress(self.store.pack_dir(pack_id), dest)

    # ── Update checks ────────────────────────────────────────────────

    def update_available(self, entry: ManifestEntry) -> bool:
        """True when the pack is installed and its version string differs.

        Plain string comparison: "1.0" and "1.0.0" count as different.
        """
        if not self.store.has_pack(entry.id):
            return False
        installed = self.store.get_installed_version(entry.id) or ""
        return installed != entry.version

    def updates_available(self, manifest: Manifest) -> list[str]:
        return [e.id for e in manifest.entries if self.update_available(e)]

    def catalog(self, manifest: Manifest | None = None) -> list[PackListing]:
        """Installed packs and manifest entries joined by id.

        Manifest entries come first in manifest order, followed by packs
        that are only installed locally, sorted by id.
        """
        manifest = manifest or Manifest()
        installed = set(self.store.list_installed_pack_ids())
        active = self.store.get_active_pack()
        rows: list[PackListing] = []
        for entry in manifest.entries:
            is_installed = entry.id in installed
            local = self.store.load_metadata(entry.id) if is_installed else None
            rows.append(
                PackListing(
                    id=entry.id,
                    name=(local.name if local and local.name else entry.name),
                    description=entry.description,
                    author=entry.author,
                    version=entry.version,
                    installed=is_installed,
                    active=entry.id == active,
                    update_available=self.update_available(entry),
                    installed_version=local.version if local else "",
                    entry=entry,
                )
            )
        advertised = set(manifest.ids)
        for pack_id in sorted(installed - advertised):
            meta = self.store.load_metadata(pack_id)
            rows.append(
                PackListing(
                    id=pack_id,
                    name=meta.name or default_pack_name(pack_id),
                    description=meta.description,
                    author=meta.author,
                    version=meta.version,
                    installed=True,
                    active=pack_id == active,
                    installed_version=meta.version,
                )
            )
        return rows

    # ── Background execution ─────────────────────────────────────────

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="soundpacks"
                )
            return self._pool.submit(fn, *args, **kwargs)

    def install_async(self, entry: ManifestEntry, **kwargs) -> Future:
        return self.submit(self.install, entry, **kwargs)

    def install_url_async(self, url: str, **kwargs) -> Future:
        return self.submit(self.install_url, url, **kwargs)

    def install_zip_async(self, path: Path, **kwargs) -> Future:
        return self.submit(self.install_zip, path, **kwargs)

    def export_async(self, pack_id: str, dest: Path) -> Future:
        return self.submit(self.export, pack_id, dest)

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=True)
                self._pool = None

    def __enter__(self) -> Installer:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
