"""
The main orchestrator for assembling the apps to prefill and running each through the pipeline.
"""

import json
import logging
import time
from typing import Iterable, List, Optional

from rich.console import Console

from steam_prefill.api.steamspy import SteamSpyClient
from steam_prefill.cli.formatters import print_summary_panel, print_unowned_apps_table
from steam_prefill.models.config import PrefillConfig
from steam_prefill.models.stats import AppOutcome, PrefillSummary
from steam_prefill.models.steam import EntitlementSnapshot
from steam_prefill.models.workload import BenchmarkWorkload
from steam_prefill.storage.entitlements import EntitlementCache
from steam_prefill.storage.selection import SelectionStore

from .app_pipeline import AppPipeline
from .benchmark import BenchmarkCapture
from .protocols import (
    AppMetadataService,
    CdnPool,
    DepotHandler,
    DepotSuccessStore,
    DownloadExecutor,
    PopularGamesSource,
    ProductInfoService,
    SteamSession,
)

log = logging.getLogger(__name__)


class PrefillManager:
    """Orchestrates an entire prefill run for a logged in account."""

    def __init__(
        self,
        config: PrefillConfig,
        session: SteamSession,
        product_info: ProductInfoService,
        metadata: AppMetadataService,
        depot_handler: DepotHandler,
        cdn_pool: CdnPool,
        executor: DownloadExecutor,
        success_store: DepotSuccessStore,
        popular_games: Optional[PopularGamesSource] = None,
        console: Optional[Console] = None,
    ):
        self.config = config
        self.session = session
        self.metadata = metadata
        self.cdn_pool = cdn_pool
        self.popular_games = popular_games
        self.console = console or Console()
        self.entitlements = EntitlementCache(config.temp_dir, product_info)
        self.selection_store = SelectionStore(config.selected_apps_path)
        self.pipeline = AppPipeline(
            config,
            self.entitlements,
            metadata,
            depot_handler,
            cdn_pool,
            executor,
            success_store,
        )
        self.summary = PrefillSummary()
        self.start_time = 0.0

    async def initialize(self) -> EntitlementSnapshot:
        """Resolves the account's entitlements. Must complete before any app is processed."""
        snapshot = await self.entitlements.refresh(
            self.session.licenses(), self.session.username
        )
        log.debug(f"Account entitlements loaded ({snapshot})")
        return snapshot

    def select_apps(self, app_ids: Iterable[int]) -> List[int]:
        """Saves the apps that should be prefilled on every future run."""
        return self.selection_store.save(app_ids)

    def load_selected_apps(self) -> List[int]:
        return self.selection_store.load()

    async def build_target_app_ids(
        self,
        manual_ids: Iterable[int] = (),
        all_owned: bool = False,
        recent: bool = False,
        popular: Optional[int] = None,
        use_selected: bool = True,
    ) -> List[int]:
        """
        Combines every source of app ids into a de-duplicated list.

        Ids keep the position of their first appearance so runs are repeatable.
        """
        app_ids: List[int] = []
        if use_selected:
            app_ids.extend(self.selection_store.load())
        app_ids.extend(manual_ids)
        if all_owned:
            app_ids.extend(sorted(self.entitlements.owned_app_ids))
        if recent:
            app_ids.extend(await self.metadata.get_recently_played_app_ids())
        if popular is not None:
            app_ids.extend(await self._top_popular_app_ids(popular))

        unique_ids = list(dict.fromkeys(int(app_id) for app_id in app_ids))
        if len(unique_ids) < len(app_ids):
            log.debug(f"Removed {len(app_ids) - len(unique_ids)} duplicate app ids.")
        return unique_ids

    async def _top_popular_app_ids(self, count: int) -> List[int]:
        if self.popular_games is not None:
            return await self.popular_games.top_app_ids(count)
        client = SteamSpyClient()
        try:
            return await client.top_app_ids(count)
        finally:
            await client.close()

    async def run(
        self,
        manual_ids: Iterable[int] = (),
        all_owned: bool = False,
        recent: bool = False,
        popular: Optional[int] = None,
    ) -> PrefillSummary:
        """
        Prefills every target app, strictly one app at a time.

        A failure inside one app is logged and counted, and the run moves on.

        Raises:
            FatalRunError: When the Lancache can't be reached, the user cancels,
            or a download is stuck retrying. No further apps are processed.
        """
        self.start_time = time.monotonic()
        await self.initialize()
        app_ids = await self.build_target_app_ids(manual_ids, all_owned, recent, popular)
        if app_ids:
            await self.metadata.retrieve_app_metadata(app_ids)
            self.console.print()
        else:
            log.warning("[yellow]No apps selected to prefill. Nothing to do.[/yellow]")

        for app_id in app_ids:
            result = await self.pipeline.run_isolated(app_id)
            self.summary.record(app_id, result.outcome, result.name)
            # Queues of failed apps were never fully transferred
            if result.outcome is AppOutcome.UPDATED:
                self.summary.total_bytes_queued += result.total_bytes

        print_unowned_apps_table(self.summary.unowned_app_names, console=self.console)
        log.info("Prefill complete!")

        duration = time.monotonic() - self.start_time
        print_summary_panel(self.summary, duration, console=self.console)
        self.save_session_stats(duration)
        return self.summary

    async def run_benchmark(
        self,
        manual_ids: Iterable[int] = (),
        all_owned: bool = False,
        use_selected: bool = False,
    ) -> BenchmarkWorkload:
        """Builds the benchmark workload file for the target apps without downloading."""
        await self.initialize()
        log.info("Building benchmark workload file...")
        app_ids = await self.build_target_app_ids(
            manual_ids, all_owned=all_owned, use_selected=use_selected
        )

        # Preloading as much metadata as possible
        await self.metadata.retrieve_app_metadata(app_ids)

        capture = BenchmarkCapture(
            self.config, self.pipeline, self.cdn_pool, console=self.console
        )
        workload = await capture.capture(app_ids)
        self.summary = capture.summary
        print_unowned_apps_table(self.summary.unowned_app_names, console=self.console)
        return workload

    def save_session_stats(self, duration: float) -> None:
        """Appends the run's summary to the session history file."""
        history_file = self.config.session_history_path
        try:
            history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(history_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "account": self.session.username,
                    **self.summary.as_dict(),
                    "duration_seconds": round(duration, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")
