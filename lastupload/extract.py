"""Timestamp extraction from a rendered upload page."""

from __future__ import annotations

import logging
from datetime import datetime

from bs4 import BeautifulSoup

from lastupload.config import DEFAULTS
from lastupload.parse import parse_time_text

log = logging.getLogger(__name__)

DEFAULT_TIME_SELECTOR: str = DEFAULTS["extract"]["time_selector"]


def extract_latest(
    html: str,
    selector: str = DEFAULT_TIME_SELECTOR,
    now: datetime | None = None,
) -> datetime | None:
    """Return the most recent parseable timestamp among *selector* matches.

    None means nothing matched or nothing parsed. It does not mean the
    entity has never published.
    """
    if not html:
        return None

    soup = BeautifulSoup(html, "html.parser")
    spans = soup.select(selector)
    if not spans:
        log.debug("No timestamp elements matched %r", selector)
        return None

    best: datetime | None = None
    for idx, span in enumerate(spans):
        text = span.get_text(strip=True)
        instant = parse_time_text(text, now=now)
        log.debug("Item %d: text=%r parsed=%s", idx, text, instant)
        if instant is not None and (best is None or instant > best):
            best = instant
    return best


def page_text(html: str) -> str:
    """Return the full text content of a rendered page."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ")
