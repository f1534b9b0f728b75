"""
Protocol interfaces for the collaborators the prefill engine drives.

The Steam session, metadata lookups, manifest handling, CDN discovery and chunk
transfers all live outside this package. Anything with matching methods can be
plugged in, which is also how the tests drive the engine with fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Protocol, Sequence, runtime_checkable

from steam_prefill.models.steam import (
    AppInfo,
    CdnServer,
    DepotInfo,
    License,
    PackageRequest,
    QueuedRequest,
)

if TYPE_CHECKING:
    from steam_prefill.models.config import PrefillConfig


@runtime_checkable
class SteamSession(Protocol):
    """A logged in Steam session."""

    @property
    def username(self) -> str: ...

    def licenses(self) -> Sequence[License]: ...


@runtime_checkable
class ProductInfoService(Protocol):
    """PICS product info lookups."""

    async def get_package_info(
        self, requests: Sequence[PackageRequest]
    ) -> dict[int, dict[str, Any]]:
        """Returns the raw KeyValues of each requested package, keyed by package id."""
        ...


@runtime_checkable
class AppMetadataService(Protocol):
    """Resolves app ids into names and depot lists."""

    async def retrieve_app_metadata(
        self,
        app_ids: Iterable[int],
        load_dlc_apps: bool = True,
        load_recently_played: bool = False,
    ) -> None:
        """Preloads metadata for a batch of apps so single lookups are cheap."""
        ...

    async def get_app_info(self, app_id: int) -> AppInfo: ...

    async def get_recently_played_app_ids(self) -> list[int]: ...


@runtime_checkable
class DepotHandler(Protocol):
    """Depot filtering and manifest processing."""

    async def filter_depots(
        self, depots: Sequence[DepotInfo], config: PrefillConfig
    ) -> list[DepotInfo]:
        """Keeps only the depots matching the configured OS, architecture and language."""
        ...

    async def build_linked_depot_info(self, depots: Sequence[DepotInfo]) -> None: ...

    async def build_chunk_download_queue(
        self, depots: Sequence[DepotInfo]
    ) -> list[QueuedRequest]:
        """Returns every chunk not already present in the cache for these depots."""
        ...


@runtime_checkable
class CdnPool(Protocol):
    """The pool of CDN servers shared by every app in a run."""

    @property
    def available_servers(self) -> list[CdnServer]: ...

    async def populate_available_servers(self) -> None:
        """Must be safe to call repeatedly; later calls may be no-ops."""
        ...


@runtime_checkable
class DownloadExecutor(Protocol):
    """Transfers queued chunks through the Lancache."""

    async def download_queued_chunks(
        self, queue: Sequence[QueuedRequest], config: PrefillConfig
    ) -> bool:
        """Returns True only if every chunk in the queue was downloaded."""
        ...


@runtime_checkable
class DepotSuccessStore(Protocol):
    """Remembers the manifest of each depot's last fully successful download."""

    async def get_manifest_ids(self, depot_ids: Sequence[int]) -> dict[int, int | None]: ...

    async def mark_successful(self, app_id: int, depots: Sequence[DepotInfo]) -> None: ...

    async def clear(self) -> bool: ...


@runtime_checkable
class PopularGamesSource(Protocol):
    """Lists the currently most played games."""

    async def top_app_ids(self, count: int) -> list[int]: ...
