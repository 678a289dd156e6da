"""Probe scheduler — periodic ticks across every registered target.

Each tick snapshots the registry, probes every target concurrently and
appends one outcome per probe. A new tick is launched every ``interval``
seconds whether or not the previous one has finished; a shared semaphore
caps in-flight probes across overlapping ticks. A launch is skipped while
probes from earlier ticks are still waiting for a slot, so the backlog
never grows past one tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .models import Outcome, Target, utcnow
from .prober import Prober
from .registry import TargetRegistry
from .store import ResultStore, StorageError

logger = logging.getLogger(__name__)


class ProbeScheduler:
    """Drives ticks and forwards outcomes to the result store."""

    def __init__(
        self,
        registry: TargetRegistry,
        store: ResultStore,
        prober: Prober,
        interval: float = 60.0,
        probe_timeout: float = 20.0,
        max_concurrency: int = 16,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.registry = registry
        self.store = store
        self.prober = prober
        self.interval = interval
        self.probe_timeout = probe_timeout
        self.max_concurrency = max_concurrency
        self._slots = asyncio.Semaphore(max_concurrency)
        # Blocking SQLite calls run off the event loop
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="healthmon-db")
        self._ticks: set[asyncio.Task[list[Outcome]]] = set()
        self._task: asyncio.Task[None] | None = None
        self._running = False
        # Ticks still snapshotting plus probes waiting for a slot
        self._queued = 0
        self.ticks_started = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the scheduling loop as a background task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self.run(), name="healthmon-scheduler")
        logger.info(
            "Probe scheduler started (interval=%ss, timeout=%ss, max_concurrency=%d)",
            self.interval, self.probe_timeout, self.max_concurrency,
        )

    async def stop(self) -> None:
        """Cancel the loop and every in-flight tick."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._cancel_ticks()
        self._executor.shutdown(wait=False)
        logger.info("Probe scheduler stopped")

    async def run(self) -> None:
        """Launch a tick every ``interval`` seconds until cancelled."""
        try:
            while True:
                if self._queued:
                    # Probes running from earlier ticks are fine; a backlog is not
                    self.ticks_skipped += 1
                    logger.warning(
                        "Tick skipped: %d probes from earlier ticks still waiting for a slot",
                        self._queued,
                    )
                else:
                    task = asyncio.create_task(self._guarded_tick())
                    self._ticks.add(task)
                    task.add_done_callback(self._ticks.discard)
                await asyncio.sleep(self.interval)
        finally:
            await self._cancel_ticks()

    async def _cancel_ticks(self) -> None:
        pending = list(self._ticks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _guarded_tick(self) -> list[Outcome]:
        try:
            return await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Tick failed")
            return []

    async def tick(self) -> list[Outcome]:
        """Probe every target in a fresh registry snapshot once."""
        self.ticks_started += 1
        tick_no = self.ticks_started
        loop = asyncio.get_running_loop()
        self._queued += 1
        try:
            targets = await loop.run_in_executor(self._executor, self.registry.snapshot)
        except StorageError as e:
            logger.error("Tick %d skipped — registry unavailable: %s", tick_no, e)
            return []
        finally:
            self._queued -= 1

        if not targets:
            logger.debug("Tick %d: no targets registered", tick_no)
            return []

        t0 = time.perf_counter()
        outcomes = await asyncio.gather(*(self._check(t) for t in targets))
        elapsed = (time.perf_counter() - t0) * 1000

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(
            "Tick %d: %d targets probed, %d failed (%.0fms)",
            tick_no, len(outcomes), failed, elapsed,
        )
        return list(outcomes)

    async def _check(self, target: Target) -> Outcome:
        """Probe one target and record the outcome (best effort)."""
        self._queued += 1
        try:
            await self._slots.acquire()
        finally:
            self._queued -= 1
        try:
            observed_at = utcnow()
            result = await self.prober.probe(target.url, self.probe_timeout)
        finally:
            self._slots.release()

        outcome = Outcome(target_id=target.id, observed_at=observed_at, result=result)
        logger.debug(
            "Check %s: status=%s latency=%sms",
            target.url, outcome.status_code, outcome.latency_ms,
        )

        loop = asyncio.get_running_loop()
        try:
            outcome = await loop.run_in_executor(self._executor, self.store.append, outcome)
        except StorageError as e:
            logger.error("Failed to record health check for target %d: %s", target.id, e)
        return outcome

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "interval_seconds": self.interval,
            "probe_timeout_seconds": self.probe_timeout,
            "max_concurrency": self.max_concurrency,
            "ticks_started": self.ticks_started,
            "ticks_skipped": self.ticks_skipped,
            "ticks_in_flight": len(self._ticks),
            "probes_queued": self._queued,
        }
