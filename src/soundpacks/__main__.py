"""CLI entry point: manage installed sound packs, manifests and registries."""

from __future__ import annotations

import sys
from concurrent.futures import Future
from pathlib import Path

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from .core.config import Config, load_config
from .core.utils import human_size, short_path
from .packs import (
    CancelToken,
    EventKind,
    Installer,
    InstallOutcome,
    InstallResult,
    ManifestClient,
    PackStore,
    RegistryStore,
)
from .packs.models import default_pack_name, parse_event, split_skip
from .packs.store import is_valid_pack_id

console = Console()

OUTCOME_MESSAGES = {
    InstallOutcome.DOWNLOAD_FAILED: "download failed",
    InstallOutcome.INVALID_ARCHIVE: "invalid or unsafe archive",
    InstallOutcome.EXTRACTION_FAILED: "extraction failed",
    InstallOutcome.UP_TO_DATE: "already up to date",
    InstallOutcome.CANCELLED: "cancelled",
}


class App:
    """Core components wired to one sounds directory."""

    def __init__(self, config: Config):
        self.config = config
        self.store = PackStore(config)
        self.registry = RegistryStore(config.custom_manifests_file)
        self.client = ManifestClient(config, self.registry)
        self.installer = Installer(config, self.store)


pass_app = click.make_pass_decorator(App)


# ── Helpers ─────────────────────────────────────────────────────────


def _report(result: InstallResult, label: str) -> None:
    if result.outcome == InstallOutcome.INSTALLED:
        ids = ", ".join(result.pack_ids) or label
        console.print(f"installed [bold]{ids}[/bold]")
        return
    headline = OUTCOME_MESSAGES.get(result.outcome, result.outcome.value)
    if result.outcome == InstallOutcome.UP_TO_DATE:
        console.print(f"[bold]{label}[/bold] {headline}", style="dim")
        return
    detail = f" ({result.message})" if result.message else ""
    console.print(f"[red]{headline}[/red]: [bold]{label}[/bold]{detail}")


def _run_with_progress(label: str, start) -> InstallResult:
    """Run an install future, drawing a progress bar and cancelling on Ctrl-C."""
    cancel = CancelToken()
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(label, total=1.0)

        def _on_progress(fraction: float) -> None:
            progress.update(task, completed=fraction)

        future: Future = start(_on_progress, cancel)
        try:
            return future.result()
        except KeyboardInterrupt:
            cancel.cancel()
            return future.result()


def _require_pack(app: App, pack_id: str) -> None:
    if not app.store.has_pack(pack_id):
        console.print(f"pack [bold]{pack_id}[/bold] is not installed", style="bold")
        sys.exit(1)


# ── CLI ─────────────────────────────────────────────────────────────


@click.group()
@click.option("--sounds-dir", type=click.Path(file_okay=False), default=None, help="Pack root")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, sounds_dir: str | None, verbose: bool):
    """Sound packs: manage event sounds for your coding agent."""
    config = load_config(sounds_dir=sounds_dir, verbose=verbose)
    app = App(config)
    ctx.obj = app
    ctx.call_on_close(app.installer.close)


@cli.command("list")
@pass_app
def list_cmd(app: App):
    """List installed packs."""
    ids = app.store.list_installed_pack_ids()
    if not ids:
        console.print("no packs installed", style="dim")
        console.print("use `soundpacks available` to browse", style="dim")
        return
    active = app.store.get_active_pack()
    for pack_id in ids:
        meta = app.store.load_metadata(pack_id)
        count, size = app.store.pack_stats(pack_id)
        marker = "[green]*[/green]" if pack_id == active else " "
        ver = f"v{meta.version}" if meta.version else ""
        console.print(
            f"{marker} [bold]{pack_id}[/bold]  {meta.name or default_pack_name(pack_id)}  "
            f"{ver}  [dim]{count} files, {human_size(size)}[/dim]"
        )


@cli.command()
@pass_app
def available(app: App):
    """List packs advertised by all manifests."""
    manifest = app.client.fetch_merged()
    for row in app.installer.catalog(manifest):
        if row.update_available:
            status = f"[yellow]update {row.installed_version or '?'} -> {row.version}[/yellow]"
        elif row.installed:
            status = "[green]installed[/green]"
        else:
            status = "[dim]available[/dim]"
        active = " [green](active)[/green]" if row.active else ""
        size = f"  {row.entry.size}" if row.entry and row.entry.size else ""
        console.print(
            f"  [bold]{row.id}[/bold]{active}  v{row.version or '?'}  {status}{size}"
            f"  [dim]{row.description}[/dim]"
        )


@cli.command()
@click.argument("pack_id")
@click.option("--force", is_flag=True, help="Reinstall even if up to date")
@pass_app
def install(app: App, pack_id: str, force: bool):
    """Install a pack from the merged manifest."""
    manifest = app.client.fetch_merged()
    entry = manifest.get(pack_id)
    if entry is None:
        console.print(f"pack [bold]{pack_id}[/bold] not found in any manifest", style="bold")
        sys.exit(1)
    result = _run_with_progress(
        f"downloading {pack_id}",
        lambda cb, cancel: app.installer.install_async(
            entry, progress=cb, cancel=cancel, force=force
        ),
    )
    _report(result, pack_id)
    if result.outcome == InstallOutcome.INSTALLED:
        app.store.ensure_active_pack()
    elif not result.ok:
        sys.exit(1)


@cli.command("install-url")
@click.argument("url")
@pass_app
def install_url(app: App, url: str):
    """Install the pack(s) contained in a zip at URL."""
    result = _run_with_progress(
        "downloading",
        lambda cb, cancel: app.installer.install_url_async(url, progress=cb, cancel=cancel),
    )
    _report(result, url)
    if not result.ok:
        sys.exit(1)
    app.store.ensure_active_pack()


@cli.command("install-zip")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@pass_app
def install_zip(app: App, path: str):
    """Install the pack(s) contained in a local zip."""
    result = app.installer.install_zip(Path(path))
    _report(result, Path(path).name)
    if not result.ok:
        sys.exit(1)
    app.store.ensure_active_pack()


@cli.command()
@click.argument("pack_id")
@pass_app
def uninstall(app: App, pack_id: str):
    """Remove an installed pack."""
    if app.installer.uninstall(pack_id):
        console.print(f"uninstalled [bold]{pack_id}[/bold]")
    else:
        console.print(f"could not remove [bold]{pack_id}[/bold]", style="bold")
        sys.exit(1)


@cli.command()
@click.argument("pack_id", required=False)
@click.option("--all", "all_", is_flag=True, help="Update every pack with a newer version")
@pass_app
def update(app: App, pack_id: str | None, all_: bool):
    """Update one pack, or all packs with --all."""
    if not pack_id and not all_:
        console.print("usage: soundpacks update <pack-id> | --all", style="dim")
        return
    manifest = app.client.fetch_merged()
    if all_:
        pending = app.installer.updates_available(manifest)
        if not pending:
            console.print("all packs are up to date", style="dim")
            return
        failed = False
        for pid in pending:
            entry = manifest.get(pid)
            result = _run_with_progress(
                f"updating {pid}",
                lambda cb, cancel, e=entry: app.installer.install_async(
                    e, progress=cb, cancel=cancel
                ),
            )
            _report(result, pid)
            failed = failed or not result.ok
        if failed:
            sys.exit(1)
        return
    entry = manifest.get(pack_id)
    if entry is None or not app.store.has_pack(pack_id):
        console.print(f"no update source for [bold]{pack_id}[/bold]", style="dim")
        return
    result = _run_with_progress(
        f"updating {pack_id}",
        lambda cb, cancel: app.installer.install_async(entry, progress=cb, cancel=cancel),
    )
    _report(result, pack_id)
    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument("pack_id")
@pass_app
def use(app: App, pack_id: str):
    """Make a pack the active one."""
    _require_pack(app, pack_id)
    if app.store.set_active_pack(pack_id):
        console.print(f"active pack: [bold]{pack_id}[/bold]")
    else:
        console.print("could not write the active pack", style="bold")
        sys.exit(1)


@cli.command()
@pass_app
def active(app: App):
    """Show the active pack."""
    pack_id = app.store.get_active_pack()
    if pack_id is None:
        console.print("no active pack", style="dim")
    elif not app.store.has_pack(pack_id):
        console.print(f"[bold]{pack_id}[/bold] [yellow](not installed)[/yellow]")
    else:
        console.print(f"[bold]{pack_id}[/bold]")


@cli.command()
@click.argument("pack_id")
@click.option("--name", default="", help="Display name")
@click.option("--description", default="")
@click.option("--author", default="")
@pass_app
def new(app: App, pack_id: str, name: str, description: str, author: str):
    """Create an empty pack with a directory for every event."""
    if not is_valid_pack_id(pack_id):
        console.print(f"invalid pack id: {pack_id!r}", style="bold")
        sys.exit(1)
    if app.store.has_pack(pack_id):
        console.print(f"pack [bold]{pack_id}[/bold] already exists", style="bold")
        sys.exit(1)
    if not app.store.create_empty_pack(pack_id):
        console.print(f"could not create [bold]{pack_id}[/bold]", style="bold")
        sys.exit(1)
    app.store.edit_metadata(pack_id, name=name, description=description, author=author)
    console.print(f"created [bold]{pack_id}[/bold] at {short_path(app.store.pack_dir(pack_id))}")


@cli.command()
@click.argument("pack_id")
@click.option("--name", default=None)
@click.option("--description", default=None)
@click.option("--author", default=None)
@click.option("--version", "version_", default=None)
@pass_app
def edit(app: App, pack_id: str, name, description, author, version_):
    """Edit a pack's name, description, author or version."""
    _require_pack(app, pack_id)
    meta = app.store.load_metadata(pack_id)
    ok = app.store.edit_metadata(
        pack_id,
        name=meta.name if name is None else name,
        description=meta.description if description is None else description,
        author=meta.author if author is None else author,
        version=meta.version if version_ is None else version_,
    )
    if ok:
        console.print(f"saved [bold]{pack_id}[/bold]")
    else:
        console.print(f"could not save [bold]{pack_id}[/bold]", style="bold")
        sys.exit(1)


@cli.command()
@click.argument("pack_id")
@pass_app
def sounds(app: App, pack_id: str):
    """List a pack's sounds per event."""
    _require_pack(app, pack_id)
    for event in EventKind:
        files = app.store.list_sound_files(pack_id, event, include_skipped=True)
        console.print(f"[bold]{event.display_name}[/bold] [dim]({event.hook_event_name})[/dim]")
        if not files:
            console.print("    (none)", style="dim")
        for f in files:
            base, skipped = split_skip(f.name)
            if skipped:
                console.print(f"    {base} [dim](skipped)[/dim]")
            else:
                console.print(f"    {base}")


@cli.command("add-sound")
@click.argument("pack_id")
@click.argument("event")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
@pass_app
def add_sound(app: App, pack_id: str, event: str, files: tuple[str, ...]):
    """Copy audio files into a pack's event directory."""
    _require_pack(app, pack_id)
    kind = parse_event(event)
    if kind is None:
        choices = ", ".join(e.value for e in EventKind)
        console.print(f"unknown event {event!r}; expected one of {choices}", style="bold")
        sys.exit(1)
    for f in files:
        dest = app.store.add_sound(pack_id, kind, Path(f))
        if dest:
            console.print(f"added [bold]{dest.name}[/bold] to {kind.value}")
        else:
            console.print(f"skipped {f} (not audio, unreadable, or already present)", style="dim")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@pass_app
def skip(app: App, path: str):
    """Toggle whether a sound is skipped during playback."""
    target = app.store.toggle_skip(Path(path).absolute())
    if target is None:
        console.print(f"could not toggle {path}", style="bold")
        sys.exit(1)
    base, skipped = split_skip(target.name)
    console.print(f"{base}: {'skipped' if skipped else 'enabled'}")


@cli.command("remove-sound")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@pass_app
def remove_sound(app: App, path: str):
    """Delete a sound file from a pack."""
    if app.store.remove_sound(Path(path).absolute()):
        console.print(f"removed {Path(path).name}")
    else:
        console.print(f"could not remove {path}", style="bold")
        sys.exit(1)


@cli.command()
@click.argument("pack_id")
@click.argument("dest", type=click.Path(dir_okay=False))
@pass_app
def export(app: App, pack_id: str, dest: str):
    """Export a pack to a zip that can be installed elsewhere."""
    _require_pack(app, pack_id)
    if app.installer.export(pack_id, Path(dest)):
        console.print(f"exported [bold]{pack_id}[/bold] to {dest}")
    else:
        console.print("export failed", style="bold")
        sys.exit(1)


@cli.command()
@click.argument("pack_id")
@pass_app
def stats(app: App, pack_id: str):
    """Show file count and size of a pack."""
    _require_pack(app, pack_id)
    count, size = app.store.pack_stats(pack_id)
    console.print(f"[bold]{pack_id}[/bold]  {count} files  {human_size(size)}")


@cli.command()
@pass_app
def mute(app: App):
    """Silence all event sounds."""
    app.store.set_muted(True)
    console.print("muted")


@cli.command()
@pass_app
def unmute(app: App):
    """Re-enable event sounds."""
    app.store.set_muted(False)
    console.print("unmuted")


@cli.command()
@click.argument("value", type=float, required=False)
@pass_app
def volume(app: App, value: float | None):
    """Show or set playback volume (0.0 to 1.0)."""
    if value is not None:
        app.store.set_volume(value)
    console.print(f"volume: {int(round(app.store.get_volume() * 100))}%")


# ── Registry ────────────────────────────────────────────────────────


@cli.group()
def registry():
    """Manage extra manifest URLs."""


@registry.command("list")
@pass_app
def registry_list(app: App):
    urls = app.registry.list()
    if not urls:
        console.print("no custom registries", style="dim")
        return
    for url in urls:
        console.print(f"  {url}")


@registry.command("add")
@click.argument("url")
@pass_app
def registry_add(app: App, url: str):
    if app.registry.add(url):
        console.print(f"added [bold]{url.strip()}[/bold]")
    else:
        console.print(f"[bold]{url.strip()}[/bold] not added (empty or already present)", style="dim")


@registry.command("remove")
@click.argument("url")
@pass_app
def registry_remove(app: App, url: str):
    if app.registry.remove(url):
        console.print(f"removed [bold]{url}[/bold]")
    else:
        console.print(f"[bold]{url}[/bold] not found", style="dim")


def main():
    cli()


if __name__ == "__main__":
    main()
