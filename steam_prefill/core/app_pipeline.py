"""
Handles the processing of a single app, from metadata lookup to chunk download.
"""

import logging
import time
from dataclasses import dataclass, field

from rich.markup import escape

from steam_prefill.exceptions import DownloadIncompleteError, FatalRunError
from steam_prefill.models.config import PrefillConfig
from steam_prefill.models.stats import AppOutcome
from steam_prefill.models.steam import AppInfo, DepotInfo, QueuedRequest
from steam_prefill.storage.entitlements import EntitlementCache
from steam_prefill.utils.formatting import format_bitrate, format_duration, format_size

from .protocols import (
    AppMetadataService,
    CdnPool,
    DepotHandler,
    DepotSuccessStore,
    DownloadExecutor,
)

log = logging.getLogger(__name__)


def is_fatal(error: BaseException) -> bool:
    """
    Whether an error should abort the whole run instead of only the current app.

    Anything that isn't an `Exception` (cancellation, Ctrl+C) is always fatal.
    """
    return isinstance(error, FatalRunError) or not isinstance(error, Exception)


@dataclass
class AppResult:
    """The outcome of running one app through the pipeline."""

    app_id: int
    outcome: AppOutcome | None = None
    app_info: AppInfo | None = None
    queued_requests: list[QueuedRequest] = field(default_factory=list, repr=False)
    error: Exception | None = None

    @property
    def name(self) -> str:
        return self.app_info.name if self.app_info else f"App {self.app_id}"

    @property
    def total_bytes(self) -> int:
        return sum(r.compressed_length for r in self.queued_requests)


class AppPipeline:
    """
    Runs a single app through the prefill steps.

    The same pipeline serves both live prefills and benchmark capture; in
    capture mode the up-to-date check and the transfer itself are skipped.
    """

    def __init__(
        self,
        config: PrefillConfig,
        entitlements: EntitlementCache,
        metadata: AppMetadataService,
        depot_handler: DepotHandler,
        cdn_pool: CdnPool,
        executor: DownloadExecutor,
        success_store: DepotSuccessStore,
    ):
        self.config = config
        self.entitlements = entitlements
        self.metadata = metadata
        self.depot_handler = depot_handler
        self.cdn_pool = cdn_pool
        self.executor = executor
        self.success_store = success_store

    async def run_isolated(self, app_id: int, capture_only: bool = False) -> AppResult:
        """
        Runs the pipeline for one app, containing any non-fatal error.

        Raises:
            FatalRunError: Re-raised unchanged, the run can't continue.
        """
        result = AppResult(app_id)
        try:
            await self._run(result, capture_only)
        except Exception as e:
            if is_fatal(e):
                raise
            result.outcome = AppOutcome.FAILED
            result.error = e
            log.error(
                f"[red]   ✗ Unexpected error for {escape(result.name)}: {escape(str(e))}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
        return result

    async def run(self, app_id: int, capture_only: bool = False) -> AppResult:
        """Runs the pipeline for one app, letting every error propagate."""
        result = AppResult(app_id)
        await self._run(result, capture_only)
        return result

    async def _run(self, result: AppResult, capture_only: bool) -> None:
        if not self.entitlements.has_app_access(result.app_id):
            result.outcome = AppOutcome.UNOWNED
            await self._lookup_unowned_name(result)
            return

        app_info = await self.metadata.get_app_info(result.app_id)
        result.app_info = app_info
        display_name = f"[cyan]{escape(app_info.name)}[/cyan]"

        # Filter depots based on the configured os/architecture/language
        filtered_depots = await self.depot_handler.filter_depots(
            app_info.depots, self.config
        )
        if not filtered_depots:
            log.info(
                f"Starting {display_name}  [yellow]No depots to download. "
                "Current arguments filtered all depots[/yellow]"
            )
            result.outcome = AppOutcome.NO_DEPOTS_MATCHED
            return

        await self.depot_handler.build_linked_depot_info(filtered_depots)

        if not capture_only:
            # The entire app is re-downloaded if any one of its depots has been updated
            if not self.config.force and await self.is_up_to_date(filtered_depots):
                if self.config.verbose:
                    log.info(f"Starting {display_name}  [green]Up to date![/green]")
                result.outcome = AppOutcome.ALREADY_UP_TO_DATE
                return

            log.info(f"Starting {display_name}")
            await self.cdn_pool.populate_available_servers()

        # Get the full file list for each depot, and queue up the required chunks
        result.queued_requests = await self.depot_handler.build_chunk_download_queue(
            filtered_depots
        )

        if capture_only:
            result.outcome = AppOutcome.UPDATED
            return

        await self._download(result, filtered_depots)

    async def _lookup_unowned_name(self, result: AppResult) -> None:
        """Only used to name the app in the unowned report, so a failed lookup is ignored."""
        try:
            result.app_info = await self.metadata.get_app_info(result.app_id)
        except Exception as e:
            if is_fatal(e):
                raise
            log.debug(f"Could not look up the name of unowned app {result.app_id}: {e}")

    async def is_up_to_date(self, depots: list[DepotInfo]) -> bool:
        """True when every depot's current manifest was already downloaded successfully."""
        stored = await self.success_store.get_manifest_ids([d.depot_id for d in depots])
        return all(
            depot.manifest_id is not None
            and stored.get(depot.depot_id) == depot.manifest_id
            for depot in depots
        )

    async def _download(self, result: AppResult, depots: list[DepotInfo]) -> None:
        queue = result.queued_requests
        total_bytes = result.total_bytes
        log.info(
            f"Downloading [magenta]{format_size(total_bytes)}[/magenta] "
            f"[dim]from {len(queue)} chunks[/dim]"
        )

        start = time.monotonic()
        # Nothing queued means everything is already in the cache
        if queue and not self.config.skip_downloads:
            if not await self.executor.download_queued_chunks(queue, self.config):
                raise DownloadIncompleteError(
                    f"Not every chunk of {result.name} could be downloaded."
                )

        await self.success_store.mark_successful(result.app_id, depots)
        result.outcome = AppOutcome.UPDATED

        elapsed = time.monotonic() - start
        log.info(
            f"Finished in [yellow]{format_duration(elapsed)}[/yellow] - "
            f"[magenta]{format_bitrate(total_bytes, elapsed)}[/magenta]"
        )
