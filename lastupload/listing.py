"""Follow-listing side: entity discovery, display lines and scans.

The listing page itself is not driven from here. A saved copy of it (or
a plain list of ids) is read, each id is resolved in page order, and a
display line per entity is rendered through Jinja2 templates.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader

from lastupload.config import DEFAULTS
from lastupload.engine import Resolution, Resolver

log = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DEFAULT_LINK_SELECTOR: str = DEFAULTS["listing"]["link_selector"]

# Profile links look like https://space.bilibili.com/3537120496978247?spm_id_from=...
MID_RE = re.compile(r'space\.bilibili\.com/(\d+)(?=[/?#]|$)')

FAILURE_TEXT = {
    "parse_failed": "parse failed",
    "navigation_timeout": "page load timed out",
    "navigation_error": "page error",
    "risk_blocked": "blocked by risk control",
    "circuit_open": "skipped, risk control active",
}


def extract_entity_id(href: str) -> str | None:
    """Extract the numeric profile id from a profile link."""
    m = MID_RE.search(href or "")
    return m.group(1) if m else None


def extract_entity_ids(html: str, link_selector: str = DEFAULT_LINK_SELECTOR) -> list[str]:
    """Return profile ids linked from a follow listing, de-duplicated in page order."""
    soup = BeautifulSoup(html, "html.parser")
    ids: list[str] = []
    seen: set[str] = set()
    for link in soup.select(link_selector):
        href = link.get("href") or ""
        mid = extract_entity_id(str(href))
        if mid is None:
            log.debug("Could not parse profile id from link %r", href)
            continue
        if mid not in seen:
            seen.add(mid)
            ids.append(mid)
    return ids


def read_listing(path: Path, link_selector: str = DEFAULT_LINK_SELECTOR) -> list[str]:
    """Read entity ids from a saved listing page or a plain id list.

    Plain lists hold one id per line; blank lines and ``#`` comments are
    ignored.
    """
    text = Path(path).read_text(encoding="utf-8")
    if "<" in text:
        return extract_entity_ids(text, link_selector)

    ids: list[str] = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line and line not in ids:
            ids.append(line)
    return ids


def format_age(instant: datetime | None, now: datetime | None = None) -> str:
    """Render how long ago *instant* was, in coarse units."""
    if instant is None:
        return "no uploads"
    if now is None:
        now = datetime.now(instant.tzinfo)
    seconds = max(int((now - instant).total_seconds()), 0)

    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    if days < 30:
        return f"{days} days ago"
    months = days // 30
    if months < 12:
        return f"{months} months ago"
    return f"{months // 12} years ago"


def _failure_text(reason: str | None) -> str:
    if reason is None:
        return "unavailable (unknown)"
    return FAILURE_TEXT.get(reason, f"unavailable ({reason})")


def _get_env() -> Environment:
    """Create a Jinja2 environment loading from lastupload/templates/."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["age"] = format_age
    env.filters["failure_text"] = _failure_text
    return env


def _line_vars(resolution: Resolution, now: datetime | None) -> dict[str, object]:
    instant = resolution.instant
    return {
        "entity_id": resolution.entity_id,
        "instant": instant,
        "exact": instant.strftime("%Y-%m-%d %H:%M") if instant else None,
        "reason": resolution.reason.value if resolution.reason else None,
        "provenance": resolution.provenance.value,
        "now": now,
    }


def render_line(resolution: Resolution, now: datetime | None = None) -> str:
    """Render the display line for one resolved entity."""
    template = _get_env().get_template("line.txt")
    return template.render(**_line_vars(resolution, now)).strip()


def render_report(
    resolutions: Iterable[Resolution],
    now: datetime | None = None,
    status: dict[str, object] | None = None,
) -> str:
    """Render display lines for a whole scan plus an optional session summary."""
    template = _get_env().get_template("report.txt")
    return template.render(
        lines=[render_line(r, now) for r in resolutions],
        status=status,
    )


async def scan(resolver: Resolver, entity_ids: Iterable[str]) -> list[Resolution]:
    """Resolve *entity_ids* one after another, in listing order."""
    ids = list(entity_ids)
    log.info("Scanning %d followed entities", len(ids))
    results: list[Resolution] = []
    for idx, entity_id in enumerate(ids):
        resolution = await resolver.resolve(entity_id)
        log.debug(
            "(%d/%d) %s -> %s [%s]",
            idx + 1, len(ids), entity_id,
            resolution.instant or resolution.reason, resolution.provenance.value,
        )
        results.append(resolution)
    return results
