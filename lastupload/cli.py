"""CLI entry point for lastupload."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

log = logging.getLogger(__name__)


# Default config template
CONFIG_TEMPLATE = """\
queue:
  load_interval: 1.5       # seconds between two page loads
  render_wait: 1.0         # seconds to let the page render after load
  navigation_timeout: 15   # seconds before a page load counts as timed out

surface:
  url_template: "https://space.bilibili.com/{id}/upload/video"

extract:
  time_selector: ".space-upload .bili-video-card__details .bili-video-card__subtitle span"

listing:
  link_selector: "a.relation-card-info__uname"
  debounce: 0.5            # seconds of quiet before a changed listing is rescanned

breaker:
  markers:
    - "-352"
    - "安全风控策略"
    - "security control policy"

browser:
  headless: true
  storage_state: null      # Playwright storage state JSON with login cookies
  user_agent: null

debug: false
"""

PROJECT_ROOT_OPTION = click.option(
    "--project-root",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Project root directory (default: cwd).",
)


def _load_config(root: Path) -> dict:
    """Load the project config, or defaults when the project has none."""
    from lastupload.config import ConfigError, default_config, load_config

    if not (root / ".lastupload" / "config.yaml").exists():
        return default_config()
    try:
        return load_config(root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(config: dict) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.get("debug") else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _read_ids(listing: str, config: dict) -> list[str]:
    from lastupload.listing import read_listing

    ids = read_listing(Path(listing), config["listing"]["link_selector"])
    if not ids:
        click.echo(f"No followed entities found in {listing}")
    return ids


async def _rescan(resolver, listing: str, config: dict) -> str | None:
    """Scan the listing once; None when it cannot be read right now."""
    from lastupload.listing import render_report, scan

    try:
        ids = _read_ids(listing, config)
    except OSError as exc:
        # Editors may remove the file briefly while saving; wait for the next change
        log.warning("Cannot read listing %s: %s", listing, exc)
        return None
    results = await scan(resolver, ids)
    return render_report(results, status=resolver.status())


@click.group()
def cli() -> None:
    """lastupload: latest upload time for every followed account."""


@cli.command()
@PROJECT_ROOT_OPTION
def init(project_root: str) -> None:
    """Initialize .lastupload/ directory with a config template."""
    root = Path(project_root)
    config_dir = root / ".lastupload"

    if config_dir.exists():
        raise click.ClickException(f".lastupload/ already exists in {root}")

    config_dir.mkdir()
    (config_dir / "config.yaml").write_text(CONFIG_TEMPLATE, encoding="utf-8")
    click.echo(f"Created {config_dir / 'config.yaml'}")


@cli.command()
@PROJECT_ROOT_OPTION
@click.argument("entity_ids", nargs=-1, required=True)
def resolve(project_root: str, entity_ids: tuple[str, ...]) -> None:
    """Resolve the latest upload time of ENTITY_IDS, in order."""
    from lastupload.engine import open_resolver
    from lastupload.listing import render_report, scan

    config = _load_config(Path(project_root))
    _configure_logging(config)

    async def _run() -> str:
        async with open_resolver(config) as resolver:
            results = await scan(resolver, entity_ids)
            return render_report(results, status=resolver.status())

    click.echo(asyncio.run(_run()), nl=False)


@cli.command("scan")
@PROJECT_ROOT_OPTION
@click.option(
    "--listing",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Saved follow page (HTML) or a file with one id per line.",
)
def scan_cmd(project_root: str, listing: str) -> None:
    """Resolve every entity found in a listing file."""
    from lastupload.engine import open_resolver
    from lastupload.listing import render_report, scan

    config = _load_config(Path(project_root))
    _configure_logging(config)
    ids = _read_ids(listing, config)
    if not ids:
        return

    async def _run() -> str:
        async with open_resolver(config) as resolver:
            results = await scan(resolver, ids)
            return render_report(results, status=resolver.status())

    click.echo(asyncio.run(_run()), nl=False)


@cli.command()
@PROJECT_ROOT_OPTION
@click.option(
    "--listing",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="Listing file to watch; every change triggers a rescan.",
)
def watch(project_root: str, listing: str) -> None:
    """Scan a listing file, then rescan whenever it changes."""
    from lastupload.engine import open_resolver
    from lastupload.watcher import ListingWatcher

    config = _load_config(Path(project_root))
    _configure_logging(config)

    async def _run() -> None:
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()
        watcher = ListingWatcher(
            Path(listing), loop, changed.set, debounce=config["listing"]["debounce"],
        )

        async with open_resolver(config) as resolver:
            watcher.start()
            try:
                changed.set()
                while True:
                    await changed.wait()
                    changed.clear()
                    report = await _rescan(resolver, listing, config)
                    if report is not None:
                        click.echo(report, nl=False)
            finally:
                watcher.stop()

    click.echo(f"Watching {listing} (Ctrl-C to stop)...")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("Stopped.")
