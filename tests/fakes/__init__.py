"""Test doubles for the collaborators the prefill engine drives."""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Sequence

from steam_prefill.exceptions import SuccessStoreError
from steam_prefill.models.steam import (
    AppInfo,
    CdnServer,
    DepotInfo,
    License,
    PackageRequest,
    QueuedRequest,
)
from steam_prefill.storage.success_store import InMemoryDepotSuccessStore


def package_kv(
    app_ids: Iterable[int] = (),
    depot_ids: Iterable[int] = (),
    free_weekend: bool = False,
    expiry: int | None = None,
) -> dict[str, Any]:
    """Builds package KeyValues shaped like a PICS product info result."""
    kv: dict[str, Any] = {
        "appids": {str(i): str(app_id) for i, app_id in enumerate(app_ids)},
        "depotids": {str(i): str(depot_id) for i, depot_id in enumerate(depot_ids)},
        "extended": {},
    }
    if free_weekend:
        kv["extended"]["freeweekend"] = "1"
    if expiry is not None:
        kv["extended"]["expirytime"] = str(expiry)
    return kv


def depot_id_for(app_id: int) -> int:
    return app_id * 10 + 1


def make_app(app_id: int, name: str | None = None, manifest_id: int = 1) -> AppInfo:
    return AppInfo(
        app_id=app_id,
        name=name or f"Game {app_id}",
        depots=[DepotInfo(depot_id_for(app_id), manifest_id=manifest_id, app_id=app_id)],
    )


def make_queue(app_id: int, chunks: int = 2, size: int = 1024) -> list[QueuedRequest]:
    return [
        QueuedRequest(
            depot_id=depot_id_for(app_id), chunk_id=f"{app_id}-{i}", compressed_length=size
        )
        for i in range(chunks)
    ]


class FakeSession:
    def __init__(self, licenses: Iterable[License], username: str = "tester"):
        self._licenses = list(licenses)
        self._username = username

    @property
    def username(self) -> str:
        return self._username

    def licenses(self) -> list[License]:
        return list(self._licenses)


class FakeProductInfo:
    def __init__(
        self, packages: dict[int, dict[str, Any]] | None = None, error: Exception | None = None
    ):
        self.packages = packages or {}
        self.error = error
        self.calls: list[list[PackageRequest]] = []

    async def get_package_info(
        self, requests: Sequence[PackageRequest]
    ) -> dict[int, dict[str, Any]]:
        self.calls.append(list(requests))
        if self.error:
            raise self.error
        return {
            r.package_id: self.packages[r.package_id]
            for r in requests
            if r.package_id in self.packages
        }


def owning(app_ids: Iterable[int]) -> tuple[FakeSession, FakeProductInfo]:
    """A session holding a single package that grants `app_ids` and their depots."""
    app_ids = list(app_ids)
    product_info = FakeProductInfo(
        {1: package_kv(app_ids, [depot_id_for(a) for a in app_ids])}
    )
    return FakeSession([License(1)]), product_info


class FakeMetadata:
    def __init__(
        self,
        apps: Iterable[AppInfo] = (),
        recent: Iterable[int] = (),
        errors: dict[int, BaseException] | None = None,
    ):
        self.apps = {app.app_id: app for app in apps}
        self.recent = list(recent)
        self.errors = errors or {}
        self.lookups: list[int] = []
        self.preloaded: list[list[int]] = []

    async def retrieve_app_metadata(
        self, app_ids, load_dlc_apps: bool = True, load_recently_played: bool = False
    ) -> None:
        self.preloaded.append(list(app_ids))

    async def get_app_info(self, app_id: int) -> AppInfo:
        self.lookups.append(app_id)
        if app_id in self.errors:
            raise self.errors[app_id]
        return self.apps.get(app_id) or make_app(app_id)

    async def get_recently_played_app_ids(self) -> list[int]:
        return list(self.recent)


class FakeDepotHandler:
    """Serves a canned chunk queue per app, keyed by the app id of its depots."""

    def __init__(
        self,
        queues: dict[int, list[QueuedRequest]] | None = None,
        errors: dict[int, BaseException] | None = None,
        filtered_out: Iterable[int] = (),
        blocked: Iterable[int] = (),
        delay: float = 0.0,
    ):
        self.queues = queues or {}
        self.errors = errors or {}
        self.filtered_out = set(filtered_out)
        self.blocked = set(blocked)
        self.delay = delay
        self.filtered: list[int] = []
        self.linked: list[int] = []
        self.built_for: list[int] = []
        self.cancelled: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def filter_depots(self, depots: Sequence[DepotInfo], config) -> list[DepotInfo]:
        self.filtered.extend(d.app_id for d in depots)
        return [d for d in depots if d.app_id not in self.filtered_out]

    async def build_linked_depot_info(self, depots: Sequence[DepotInfo]) -> None:
        self.linked.extend(d.app_id for d in depots)

    async def build_chunk_download_queue(
        self, depots: Sequence[DepotInfo]
    ) -> list[QueuedRequest]:
        app_id = depots[0].app_id
        self.built_for.append(app_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if app_id in self.blocked:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if app_id in self.errors:
                raise self.errors[app_id]
            return list(self.queues.get(app_id, []))
        except asyncio.CancelledError:
            self.cancelled.append(app_id)
            raise
        finally:
            self.in_flight -= 1


class FakeCdnPool:
    def __init__(self, servers: Iterable[CdnServer] = ()):
        self._servers = list(servers)
        self.populate_calls = 0

    @property
    def available_servers(self) -> list[CdnServer]:
        return list(self._servers)

    async def populate_available_servers(self) -> None:
        self.populate_calls += 1


class FakeExecutor:
    def __init__(self, succeeds: bool = True, errors: dict[int, BaseException] | None = None):
        self.succeeds = succeeds
        self.errors = errors or {}
        self.downloaded: list[list[QueuedRequest]] = []

    async def download_queued_chunks(self, queue: Sequence[QueuedRequest], config) -> bool:
        self.downloaded.append(list(queue))
        depot_id = queue[0].depot_id
        app_id = (depot_id - 1) // 10
        if app_id in self.errors:
            raise self.errors[app_id]
        return self.succeeds


class FakePopularGames:
    def __init__(self, app_ids: Iterable[int]):
        self.app_ids = list(app_ids)

    async def top_app_ids(self, count: int) -> list[int]:
        return self.app_ids[:count]


class FailingSuccessStore(InMemoryDepotSuccessStore):
    """Refuses to record the depots of the given apps."""

    def __init__(self, fail_for: Iterable[int]):
        super().__init__()
        self.fail_for = set(fail_for)

    async def mark_successful(self, app_id: int, depots: Sequence[DepotInfo]) -> None:
        if app_id in self.fail_for:
            raise SuccessStoreError(f"database is locked (app {app_id})")
        await super().mark_successful(app_id, depots)
