"""Check cycle — probe every target concurrently, persist, then aggregate.

Both the scheduler and ``POST /api/run-now`` go through ``run_cycle``.
Overlapping cycles are not coordinated: the last write wins per key and the
expiry window bounds any staleness.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from statuspage.config import Settings
from statuspage.health.engine import AggregateVerdict, ProbeResult, Verdict, aggregate, probe
from statuspage.health.store import ResultStore
from statuspage.targets.registry import Target, TargetRegistry

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    results: list[ProbeResult]
    verdict: AggregateVerdict
    duration_ms: int

    @property
    def failed(self) -> list[ProbeResult]:
        return [r for r in self.results if not r.ok]


class StatusChecker:
    """Runs check cycles for a registry against a result store."""

    def __init__(
        self,
        registry: TargetRegistry,
        store: ResultStore,
        timeout_ms: int = 8_000,
        result_ttl: int = 900,
        verdict_ttl: int = 300,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.timeout_ms = timeout_ms
        self.result_ttl = result_ttl
        self.verdict_ttl = verdict_ttl
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        registry: TargetRegistry,
        store: ResultStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "StatusChecker":
        return cls(
            registry,
            store,
            timeout_ms=cfg.probe_timeout_ms,
            result_ttl=cfg.result_ttl_seconds,
            verdict_ttl=cfg.fresh_ttl_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout_ms / 1000,
            follow_redirects=True,
            headers={"cache-control": "no-cache"},
        )

    async def _check_and_store(self, client: httpx.AsyncClient, target: Target) -> ProbeResult:
        result = await probe(client, target, self.timeout_ms)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.put_result, result, self.result_ttl)
        logger.debug(
            "Probe %s: ok=%s status=%d (%dms)%s",
            target.id, result.ok, result.status, result.time,
            f" — {result.error}" if result.error else "",
        )
        return result

    async def run_cycle(self) -> CycleReport:
        """Probe all targets, wait for every one to settle, then store the verdict."""
        targets = self.registry.targets
        t0 = time.perf_counter()

        # Every task settles before the shared client closes, even if a write failed
        async with self._client() as client:
            outcomes = await asyncio.gather(
                *(self._check_and_store(client, t) for t in targets),
                return_exceptions=True,
            )

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        if errors:
            raise errors[0]
        results: list[ProbeResult] = list(outcomes)

        verdict = aggregate(results)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.put_verdict, verdict, self.verdict_ttl)

        report = CycleReport(
            results=results,
            verdict=verdict,
            duration_ms=int(round((time.perf_counter() - t0) * 1000)),
        )
        log = logger.info if verdict.overall is Verdict.OPERATIONAL else logger.warning
        log(
            "Check cycle done: %s — %d/%d targets ok (%dms)",
            verdict.overall.value,
            len(report.results) - len(report.failed),
            len(report.results),
            report.duration_ms,
        )
        return report
