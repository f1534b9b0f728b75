"""
Builds a benchmark workload by running the app pipeline for many apps in parallel.
"""

import asyncio
import logging
from typing import List, Optional

from rich.console import Console

from steam_prefill.cli.formatters import print_benchmark_summary
from steam_prefill.models.config import PrefillConfig
from steam_prefill.models.stats import AppOutcome, PrefillSummary
from steam_prefill.models.workload import AppQueuedRequests, BenchmarkWorkload

from .app_pipeline import AppPipeline
from .protocols import CdnPool

log = logging.getLogger(__name__)


class BenchmarkCapture:
    """
    Captures every chunk request each app would make, without transferring anything.

    Apps are processed `config.benchmark_workers` at a time. A failing app is
    logged and left out of the workload. A fatal error cancels every app still
    in flight and propagates.
    """

    def __init__(
        self,
        config: PrefillConfig,
        pipeline: AppPipeline,
        cdn_pool: CdnPool,
        console: Optional[Console] = None,
    ):
        self.config = config
        self.pipeline = pipeline
        self.cdn_pool = cdn_pool
        self.console = console
        self.summary = PrefillSummary()
        self.semaphore = asyncio.Semaphore(config.benchmark_workers)

    async def capture(self, app_ids: List[int]) -> BenchmarkWorkload:
        """Builds the workload for `app_ids` and writes it to the configured path."""
        await self.cdn_pool.populate_available_servers()

        workload = await self.build_workload(app_ids)

        path = self.config.benchmark_workload_path
        file_size = await workload.save(path)
        print_benchmark_summary(workload, path, file_size, console=self.console)
        return workload

    async def build_workload(self, app_ids: List[int]) -> BenchmarkWorkload:
        workload = BenchmarkWorkload()

        tasks = [
            asyncio.create_task(self._capture_app(app_id, workload))
            for app_id in app_ids
        ]
        if tasks:
            await self._wait_all_or_first_fatal(tasks)

        # Tasks append in completion order; sort back into target order
        position = {app_id: i for i, app_id in enumerate(app_ids)}
        workload.queued_apps.sort(key=lambda app: position.get(app.app_id, len(position)))
        workload.cdn_servers = list(self.cdn_pool.available_servers)
        return workload

    async def _capture_app(self, app_id: int, workload: BenchmarkWorkload) -> None:
        async with self.semaphore:
            result = await self.pipeline.run_isolated(app_id, capture_only=True)

        self.summary.record(app_id, result.outcome, result.name)
        if result.outcome is AppOutcome.UPDATED and result.queued_requests:
            workload.queued_apps.append(
                AppQueuedRequests(
                    name=result.name,
                    app_id=app_id,
                    queued_requests=result.queued_requests,
                )
            )
            self.summary.total_bytes_queued += result.total_bytes
            log.debug(f"Captured {len(result.queued_requests)} chunks for {result.name}")

    @staticmethod
    async def _wait_all_or_first_fatal(tasks: List[asyncio.Task]) -> None:
        """
        Waits for every task. Per-app errors never escape a task, so the first
        task that raises carries a fatal error: cancel the rest and re-raise it.
        """
        try:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()
