"""Shared fixtures: a scripted navigation surface and fast engine config."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from lastupload.config import _deep_merge, default_config

HANG = object()


def upload_page(*times: str) -> str:
    """Build a minimal rendered upload page listing items with *times*."""
    cards = "".join(
        '<div class="bili-video-card__details">'
        '<div class="bili-video-card__subtitle">'
        f"<span>{t}</span>"
        "</div></div>"
        for t in times
    )
    return f'<html><body><div class="space-upload">{cards}</div></body></html>'


BLOCK_PAGE = (
    "<html><body><div class='error'>"
    "由于触发哔哩哔哩安全风控策略，该次访问请求被拒绝。"
    "</div></body></html>"
)


class ScriptedSurface:
    """Navigation surface whose pages are scripted per URL.

    Each URL maps to a list of steps consumed one per visit (the last
    step repeats). A step is HTML text, an exception to raise from
    ``goto``, or ``HANG`` to never finish loading.
    """

    def __init__(self, load_delay: float = 0.0) -> None:
        self.load_delay = load_delay
        self.steps: dict[str, list[Any]] = {}
        self.visits: list[str] = []
        self.active = 0
        self.max_active = 0
        self.on_goto: Callable[[str], None] | None = None
        self._current = ""

    def script(self, url: str, *steps: Any) -> None:
        self.steps[url] = list(steps)

    def _next_step(self, url: str) -> Any:
        steps = self.steps.get(url, ["<html></html>"])
        return steps.pop(0) if len(steps) > 1 else steps[0]

    async def goto(self, url: str) -> None:
        if self.on_goto is not None:
            self.on_goto(url)
        self.visits.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            step = self._next_step(url)
            if step is HANG:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.load_delay)
            if isinstance(step, BaseException):
                raise step
            self._current = step
        finally:
            self.active -= 1

    async def content(self) -> str:
        return self._current


@pytest.fixture
def surface() -> ScriptedSurface:
    return ScriptedSurface()


@pytest.fixture
def fast_config() -> dict:
    """Default config with delays shrunk for tests."""
    return _deep_merge(default_config(), {
        "queue": {
            "load_interval": 0.01,
            "render_wait": 0.0,
            "navigation_timeout": 0.2,
        },
        "debug": False,
    })


def page_url(entity_id: str) -> str:
    return f"https://space.bilibili.com/{entity_id}/upload/video"
