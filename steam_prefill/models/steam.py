"""
Data structures describing Steam licenses, packages, apps and queued chunk requests.

Transient records are plain dataclasses; anything written to disk is a Pydantic
model so it can be validated when read back.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class License:
    """A single license as reported by the session client."""

    package_id: int
    access_token: int = 0
    expired: bool = False


@dataclass(frozen=True)
class PackageRequest:
    """A (package id, access token) pair for the product info query."""

    package_id: int
    access_token: int = 0


def _kv_ids(value: Any) -> list[int]:
    """Reads a KeyValues id list, which Steam encodes as {"0": "440", "1": ...}."""
    if not value:
        return []
    if isinstance(value, dict):
        value = value.values()
    return [int(v) for v in value]


def _kv_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() not in ("", "0", "false", "False")
    return bool(value)


@dataclass
class Package:
    """A package the account holds a license for, and the apps/depots it grants."""

    id: int
    app_ids: list[int] = field(default_factory=list)
    depot_ids: list[int] = field(default_factory=list)
    is_free_weekend: bool = False
    free_weekend_expired: bool = False

    @classmethod
    def from_product_info(
        cls, package_id: int, key_values: dict[str, Any], now: float | None = None
    ) -> "Package":
        """
        Builds a package from a product info result.

        A free weekend package has expired once its `extended.expirytime`
        (unix seconds) lies in the past.
        """
        extended = key_values.get("extended") or {}
        is_free_weekend = _kv_bool(extended.get("freeweekend", False))

        expired = False
        if expiry := extended.get("expirytime"):
            current = time.time() if now is None else now
            expired = int(expiry) < current

        return cls(
            id=int(package_id),
            app_ids=_kv_ids(key_values.get("appids")),
            depot_ids=_kv_ids(key_values.get("depotids")),
            is_free_weekend=is_free_weekend,
            free_weekend_expired=is_free_weekend and expired,
        )

    @property
    def grants_access(self) -> bool:
        """Expired free weekend grants no longer give access to anything."""
        return not (self.is_free_weekend and self.free_weekend_expired)


@dataclass(frozen=True)
class DepotInfo:
    """The parts of a depot the prefill engine needs; the rest is opaque."""

    depot_id: int
    manifest_id: int | None = None
    app_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass
class AppInfo:
    """Metadata for a single app, as returned by the metadata service."""

    app_id: int
    name: str
    depots: list[DepotInfo] = field(default_factory=list)
    is_dlc: bool = False
    minutes_played_last_2_weeks: int | None = None

    def __str__(self) -> str:
        return self.name


class QueuedRequest(BaseModel):
    """A single chunk that needs to be requested from the CDN."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    depot_id: int = Field(alias="depotId")
    chunk_id: str = Field(alias="chunkId")
    compressed_length: int = Field(alias="compressedLength", ge=0)


class EntitlementSnapshot(BaseModel):
    """
    Cached record of which packages, apps and depots an account may access.

    `license_count` is the number of non-expired licenses the snapshot was built
    from, and is what staleness is judged against.
    """

    model_config = ConfigDict(populate_by_name=True)

    license_count: int = Field(default=0, alias="licenseCount", ge=0)
    owned_package_ids: set[int] = Field(default_factory=set, alias="ownedPackageIds")
    owned_app_ids: set[int] = Field(default_factory=set, alias="ownedAppIds")
    owned_depot_ids: set[int] = Field(default_factory=set, alias="ownedDepotIds")

    def to_json(self) -> str:
        data = self.model_dump(mode="json", by_alias=True)
        # Sorted lists keep the file stable between identical refreshes.
        for key in ("ownedPackageIds", "ownedAppIds", "ownedDepotIds"):
            data[key] = sorted(data[key])
        return json.dumps(data, indent=2)

    def __str__(self) -> str:
        return (
            f"Packages : {len(self.owned_package_ids)} "
            f"Apps : {len(self.owned_app_ids)} "
            f"Depots : {len(self.owned_depot_ids)}"
        )


class CdnServer(BaseModel):
    """A CDN endpoint chunks can be requested from."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str
    port: int = 80
    server_type: str = Field(default="SteamCache", alias="type")
    cell_id: int | None = Field(default=None, alias="cellId")
