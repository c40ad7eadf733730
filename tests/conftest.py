"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from statuspage.health.checker import StatusChecker
from statuspage.health.store import MemoryKV, ResultStore
from statuspage.targets.registry import Target, TargetRegistry

HEALTHY_URL = "https://healthy.example.com/"
UNREACHABLE_URL = "https://unreachable.example.com/"
BROKEN_URL = "https://broken.example.com/"
HANGING_URL = "https://hanging.example.com/"
SLOW_URL = "https://slow.example.com/"


async def _fake_upstream(request: httpx.Request) -> httpx.Response:
    """Stand-in for the internet: one behaviour per host."""
    host = request.url.host
    if host == "healthy.example.com":
        return httpx.Response(200, text="ok")
    if host == "broken.example.com":
        return httpx.Response(503, text="maintenance")
    if host == "slow.example.com":
        await asyncio.sleep(0.1)
        return httpx.Response(200, text="ok")
    if host == "hanging.example.com":
        await asyncio.sleep(30)
        return httpx.Response(200)
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def transport() -> httpx.MockTransport:
    return httpx.MockTransport(_fake_upstream)


@pytest.fixture
def targets() -> list[Target]:
    return [
        Target(id="a", group="APIs", url=HEALTHY_URL),
        Target(id="b", group="Render", url=UNREACHABLE_URL),
    ]


@pytest.fixture
def registry(targets: list[Target]) -> TargetRegistry:
    return TargetRegistry(targets=targets)


@pytest.fixture
def kv() -> MemoryKV:
    return MemoryKV()


@pytest.fixture
def store(kv: MemoryKV) -> ResultStore:
    return ResultStore(kv)


@pytest.fixture
def make_checker(
    store: ResultStore, transport: httpx.MockTransport
) -> Callable[..., StatusChecker]:
    """Build a StatusChecker over the in-memory store and fake upstream."""

    def _make(targets: list[Target], **kwargs: Any) -> StatusChecker:
        kwargs.setdefault("timeout_ms", 500)
        kwargs.setdefault("transport", transport)
        return StatusChecker(TargetRegistry(targets=targets), store, **kwargs)

    return _make
