"""Unit tests for AppPipeline."""

import pytest

from steam_prefill.core.app_pipeline import AppPipeline, is_fatal
from steam_prefill.exceptions import (
    DownloadIncompleteError,
    InfiniteLoopError,
    LancacheNotFoundError,
    SuccessStoreError,
    UserCancelledError,
)
from steam_prefill.models.stats import AppOutcome
from steam_prefill.storage.entitlements import EntitlementCache
from steam_prefill.storage.success_store import InMemoryDepotSuccessStore
from tests.fakes import (
    FailingSuccessStore,
    FakeCdnPool,
    FakeDepotHandler,
    FakeExecutor,
    FakeMetadata,
    depot_id_for,
    make_app,
    make_queue,
    owning,
)


@pytest.fixture
async def entitlements(config):
    session, product_info = owning([100, 200])
    cache = EntitlementCache(config.temp_dir, product_info)
    await cache.refresh(session.licenses(), session.username)
    return cache


@pytest.fixture
def depot_handler():
    return FakeDepotHandler(queues={100: make_queue(100, chunks=3, size=1000)})


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def cdn_pool():
    return FakeCdnPool()


@pytest.fixture
def success_store():
    return InMemoryDepotSuccessStore()


@pytest.fixture
def pipeline(config, entitlements, depot_handler, cdn_pool, executor, success_store):
    return AppPipeline(
        config,
        entitlements,
        FakeMetadata([make_app(100, "Portal"), make_app(200), make_app(300)]),
        depot_handler,
        cdn_pool,
        executor,
        success_store,
    )


class TestOutcomes:
    async def test_owned_app_is_downloaded(self, pipeline, executor, success_store):
        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.UPDATED
        assert result.name == "Portal"
        assert result.total_bytes == 3000
        assert len(executor.downloaded) == 1
        assert await success_store.get_manifest_ids([depot_id_for(100)]) == {
            depot_id_for(100): 1
        }

    async def test_unowned_app_skips_pipeline(self, pipeline, depot_handler):
        result = await pipeline.run(300)

        assert result.outcome is AppOutcome.UNOWNED
        assert depot_handler.filtered == []

    async def test_unowned_app_without_metadata_is_still_unowned(self, pipeline):
        pipeline.metadata.errors[300] = RuntimeError("app info timed out")

        result = await pipeline.run_isolated(300)

        assert result.outcome is AppOutcome.UNOWNED
        assert result.name == "App 300"

    async def test_unowned_app_lookup_keeps_fatal_errors(self, pipeline):
        pipeline.metadata.errors[300] = UserCancelledError("bye")

        with pytest.raises(UserCancelledError):
            await pipeline.run_isolated(300)

    async def test_no_matching_depots(self, pipeline, depot_handler, executor):
        depot_handler.filtered_out.add(100)

        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.NO_DEPOTS_MATCHED
        assert depot_handler.built_for == []
        assert executor.downloaded == []

    async def test_empty_queue_is_updated(self, pipeline, executor, success_store):
        result = await pipeline.run(200)

        assert result.outcome is AppOutcome.UPDATED
        assert executor.downloaded == []
        assert await success_store.get_manifest_ids([depot_id_for(200)]) == {
            depot_id_for(200): 1
        }

    async def test_second_run_is_up_to_date(self, pipeline, executor, cdn_pool):
        await pipeline.run(100)
        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.ALREADY_UP_TO_DATE
        assert len(executor.downloaded) == 1
        assert cdn_pool.populate_calls == 1

    async def test_new_manifest_is_not_up_to_date(self, pipeline, success_store):
        await success_store.mark_successful(
            100, make_app(100, manifest_id=0).depots
        )

        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.UPDATED

    async def test_force_downloads_up_to_date_app(self, pipeline, config, executor):
        await pipeline.run(100)
        config.force = True

        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.UPDATED
        assert len(executor.downloaded) == 2

    async def test_skip_downloads_still_marks_success(self, pipeline, config, executor):
        config.skip_downloads = True

        result = await pipeline.run(100)

        assert result.outcome is AppOutcome.UPDATED
        assert executor.downloaded == []


class TestErrorIsolation:
    async def test_incomplete_download_fails_app(self, pipeline, executor, success_store):
        executor.succeeds = False

        result = await pipeline.run_isolated(100)

        assert result.outcome is AppOutcome.FAILED
        assert isinstance(result.error, DownloadIncompleteError)
        assert await success_store.count() == 0

    async def test_success_store_write_failure_fails_only_that_app(
        self, config, entitlements, depot_handler, cdn_pool, executor
    ):
        store = FailingSuccessStore(fail_for=[100])
        pipeline = AppPipeline(
            config,
            entitlements,
            FakeMetadata(),
            depot_handler,
            cdn_pool,
            executor,
            store,
        )

        failed = await pipeline.run_isolated(100)
        next_app = await pipeline.run_isolated(200)

        assert failed.outcome is AppOutcome.FAILED
        assert isinstance(failed.error, SuccessStoreError)
        assert next_app.outcome is AppOutcome.UPDATED
        assert await store.get_manifest_ids([depot_id_for(100), depot_id_for(200)]) == {
            depot_id_for(100): None,
            depot_id_for(200): 1,
        }

    async def test_unexpected_error_fails_app(self, pipeline, depot_handler):
        depot_handler.errors[100] = ValueError("bad manifest")

        result = await pipeline.run_isolated(100)

        assert result.outcome is AppOutcome.FAILED
        assert result.name == "Portal"

    async def test_fatal_error_propagates_unchanged(self, pipeline, depot_handler):
        error = LancacheNotFoundError("no lancache")
        depot_handler.errors[100] = error

        with pytest.raises(LancacheNotFoundError) as exc_info:
            await pipeline.run_isolated(100)

        assert exc_info.value is error

    @pytest.mark.parametrize(
        "error",
        [LancacheNotFoundError(), UserCancelledError(), InfiniteLoopError(), KeyboardInterrupt()],
    )
    def test_fatal_classification(self, error):
        assert is_fatal(error)

    @pytest.mark.parametrize("error", [ValueError(), TimeoutError(), DownloadIncompleteError()])
    def test_non_fatal_classification(self, error):
        assert not is_fatal(error)


class TestCaptureOnly:
    async def test_capture_skips_transfer_and_up_to_date_check(
        self, pipeline, executor, cdn_pool
    ):
        await pipeline.run(100)

        result = await pipeline.run(100, capture_only=True)

        assert result.outcome is AppOutcome.UPDATED
        assert len(result.queued_requests) == 3
        assert len(executor.downloaded) == 1
        assert cdn_pool.populate_calls == 1
