"""Health check engine — probes targets over HTTP and reduces results to a verdict.

A probe never raises: timeouts, connection errors and non-2xx responses all
come back as a ProbeResult with ``ok=False``. The timeout is a hard wall-clock
bound, so a transport that never answers still settles in time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from statuspage.targets.registry import Target

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Models ───────────────────────────────────────────────────────────────────


class Verdict(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"


@dataclass
class ProbeResult:
    """Outcome of a single probe, stored under ``status:<id>``."""

    id: str
    group: str
    url: str
    ok: bool
    status: int
    time: int
    error: str | None = None
    at: str = field(default_factory=utc_now)

    @classmethod
    def for_target(cls, target: Target, **kwargs: Any) -> "ProbeResult":
        return cls(id=target.id, group=target.group, url=target.url, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AggregateVerdict:
    """Single health value for the whole target set, stored under ``status:overall``."""

    overall: Verdict
    at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {"overall": self.overall.value, "at": self.at}


# ── Prober ───────────────────────────────────────────────────────────────────


def _elapsed_ms(t0: float) -> int:
    return int(round((time.perf_counter() - t0) * 1000))


async def probe(client: httpx.AsyncClient, target: Target, timeout_ms: int) -> ProbeResult:
    """Issue one GET against ``target.url`` bounded by ``timeout_ms``."""
    t0 = time.perf_counter()
    try:
        resp = await asyncio.wait_for(
            client.get(target.url, timeout=timeout_ms / 1000),
            timeout=timeout_ms / 1000,
        )
        return ProbeResult.for_target(
            target,
            ok=resp.is_success,
            status=resp.status_code,
            time=_elapsed_ms(t0),
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        return ProbeResult.for_target(
            target, ok=False, status=0, time=_elapsed_ms(t0),
            error=f"Timed out after {timeout_ms}ms",
        )
    except httpx.HTTPError as e:
        return ProbeResult.for_target(
            target, ok=False, status=0, time=_elapsed_ms(t0),
            error=f"{type(e).__name__}: {e}" if str(e) else type(e).__name__,
        )
    except Exception as e:
        # Invalid URLs and anything else the transport throws are still just a failed probe
        return ProbeResult.for_target(
            target, ok=False, status=0, time=_elapsed_ms(t0),
            error=f"Error: {type(e).__name__}: {e}",
        )


# ── Aggregator ───────────────────────────────────────────────────────────────


def _is_ok(record: ProbeResult | dict[str, Any] | None) -> bool:
    if record is None:
        return False
    if isinstance(record, ProbeResult):
        return record.ok is True
    return record.get("ok") is True


def aggregate(results: Iterable[ProbeResult | dict[str, Any] | None]) -> AggregateVerdict:
    """Reduce results to a verdict. An empty set is degraded, not vacuously healthy."""
    records = list(results)
    healthy = bool(records) and all(_is_ok(r) for r in records)
    return AggregateVerdict(overall=Verdict.OPERATIONAL if healthy else Verdict.DEGRADED)
