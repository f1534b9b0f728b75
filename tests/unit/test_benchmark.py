"""Unit tests for BenchmarkCapture."""

import json

import pytest

from steam_prefill.core.app_pipeline import AppPipeline
from steam_prefill.core.benchmark import BenchmarkCapture
from steam_prefill.exceptions import LancacheNotFoundError
from steam_prefill.models.stats import AppOutcome
from steam_prefill.models.steam import CdnServer
from steam_prefill.models.workload import BenchmarkWorkload
from steam_prefill.storage.entitlements import EntitlementCache
from steam_prefill.storage.success_store import InMemoryDepotSuccessStore
from tests.fakes import (
    FakeCdnPool,
    FakeDepotHandler,
    FakeExecutor,
    FakeMetadata,
    make_queue,
    owning,
)

APPS = [100, 200, 300, 400, 500, 600]


@pytest.fixture
async def entitlements(config):
    session, product_info = owning(APPS)
    cache = EntitlementCache(config.temp_dir, product_info)
    await cache.refresh(session.licenses(), session.username)
    return cache


@pytest.fixture
def cdn_pool():
    return FakeCdnPool([CdnServer(host="lancache.steamcontent.com", cell_id=12)])


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def make_capture(config, console, entitlements, cdn_pool, executor):
    def _make(depot_handler):
        pipeline = AppPipeline(
            config,
            entitlements,
            FakeMetadata(),
            depot_handler,
            cdn_pool,
            executor,
            InMemoryDepotSuccessStore(),
        )
        return BenchmarkCapture(config, pipeline, cdn_pool, console=console)

    return _make


class TestCapture:
    async def test_only_apps_with_chunks_are_captured(
        self, config, make_capture, cdn_pool, executor
    ):
        depot_handler = FakeDepotHandler(
            queues={100: make_queue(100, chunks=3), 300: make_queue(300)},
            filtered_out=[200],
        )
        capture = make_capture(depot_handler)

        workload = await capture.capture([100, 200, 300, 400])

        assert [app.app_id for app in workload.queued_apps] == [100, 300]
        assert workload.chunk_count == 5
        assert capture.summary.outcomes[200] is AppOutcome.NO_DEPOTS_MATCHED
        assert capture.summary.updated == 3
        assert capture.summary.total_bytes_queued == 5 * 1024
        assert executor.downloaded == []
        assert cdn_pool.populate_calls == 1

        saved = await BenchmarkWorkload.load(config.benchmark_workload_path)
        assert saved == workload
        assert saved.cdn_servers[0].host == "lancache.steamcontent.com"

    async def test_workload_file_uses_camel_case_keys(self, config, make_capture):
        capture = make_capture(FakeDepotHandler(queues={100: make_queue(100, chunks=1)}))

        await capture.capture([100])

        data = json.loads(config.benchmark_workload_path.read_text())
        assert data["queuedApps"][0]["appId"] == 100
        assert data["queuedApps"][0]["queuedRequests"][0] == {
            "depotId": 1001,
            "chunkId": "100-0",
            "compressedLength": 1024,
        }
        assert data["cdnServers"][0]["cellId"] == 12

    async def test_existing_file_is_replaced(self, config, make_capture):
        config.benchmark_workload_path.parent.mkdir(parents=True, exist_ok=True)
        config.benchmark_workload_path.write_text("stale contents " * 1000)
        capture = make_capture(FakeDepotHandler(queues={100: make_queue(100)}))

        await capture.capture([100])

        saved = await BenchmarkWorkload.load(config.benchmark_workload_path)
        assert [app.app_id for app in saved.queued_apps] == [100]
        leftovers = [
            p for p in config.benchmark_workload_path.parent.iterdir() if p.suffix == ".tmp"
        ]
        assert leftovers == []

    async def test_failed_app_is_left_out(self, make_capture):
        depot_handler = FakeDepotHandler(
            queues={100: make_queue(100), 200: make_queue(200)},
            errors={200: RuntimeError("manifest request failed")},
        )
        capture = make_capture(depot_handler)

        workload = await capture.capture([100, 200])

        assert [app.app_id for app in workload.queued_apps] == [100]
        assert capture.summary.failed_apps == 1

    async def test_results_keep_target_order(self, make_capture):
        depot_handler = FakeDepotHandler(
            queues={app_id: make_queue(app_id) for app_id in APPS}, delay=0.01
        )
        capture = make_capture(depot_handler)
        order = [600, 100, 400, 300, 500, 200]

        workload = await capture.build_workload(order)

        assert [app.app_id for app in workload.queued_apps] == order


class TestConcurrency:
    async def test_parallelism_is_bounded_by_worker_count(self, config, make_capture):
        config.benchmark_workers = 2
        depot_handler = FakeDepotHandler(
            queues={app_id: make_queue(app_id) for app_id in APPS}, delay=0.02
        )
        capture = make_capture(depot_handler)

        workload = await capture.build_workload(APPS)

        assert depot_handler.max_in_flight == 2
        assert len(workload.queued_apps) == len(APPS)

    async def test_fatal_error_cancels_in_flight_apps(self, config, make_capture):
        error = LancacheNotFoundError("lancache.steamcontent.com did not resolve")
        depot_handler = FakeDepotHandler(blocked=[100, 300], errors={200: error})
        capture = make_capture(depot_handler)

        with pytest.raises(LancacheNotFoundError) as exc_info:
            await capture.capture([100, 200, 300])

        assert exc_info.value is error
        assert sorted(depot_handler.cancelled) == [100, 300]
        assert depot_handler.in_flight == 0
        assert not config.benchmark_workload_path.exists()

    async def test_no_apps_builds_an_empty_workload(self, make_capture):
        workload = await make_capture(FakeDepotHandler()).build_workload([])

        assert workload.queued_apps == []
        assert workload.chunk_count == 0
