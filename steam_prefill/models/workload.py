"""
Pydantic models for the benchmark workload file, plus atomic persistence.
"""

import logging
import os
from pathlib import Path

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from steam_prefill.exceptions import BenchmarkWorkloadError

from .steam import CdnServer, QueuedRequest

log = logging.getLogger(__name__)


class AppQueuedRequests(BaseModel):
    """Every chunk a single app would request during a prefill."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="appName")
    app_id: int = Field(alias="appId")
    queued_requests: list[QueuedRequest] = Field(alias="queuedRequests")

    @property
    def total_bytes(self) -> int:
        return sum(r.compressed_length for r in self.queued_requests)


class BenchmarkWorkload(BaseModel):
    """A portable description of a prefill's requests, replayed by the benchmark tool."""

    model_config = ConfigDict(populate_by_name=True)

    queued_apps: list[AppQueuedRequests] = Field(
        default_factory=list, alias="queuedApps"
    )
    cdn_servers: list[CdnServer] = Field(default_factory=list, alias="cdnServers")

    @property
    def chunk_count(self) -> int:
        return sum(len(app.queued_requests) for app in self.queued_apps)

    @property
    def total_bytes(self) -> int:
        return sum(app.total_bytes for app in self.queued_apps)

    async def save(self, path: Path) -> int:
        """
        Writes the workload to `path`, fully replacing any previous file.

        The file is written to a sibling temp file first and moved into place,
        so a reader never sees a partially written workload.

        Returns:
            The size of the written file in bytes.
        """
        temp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        payload = self.model_dump_json(by_alias=True)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
            raise BenchmarkWorkloadError(
                f"Failed to write benchmark workload to '{path}': {e}"
            ) from e
        log.debug(f"Saved benchmark workload with {len(self.queued_apps)} apps.")
        return path.stat().st_size

    @classmethod
    async def load(cls, path: Path) -> "BenchmarkWorkload":
        """Reads a workload file previously written by `save`."""
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
            return cls.model_validate_json(raw)
        except (OSError, ValidationError) as e:
            raise BenchmarkWorkloadError(
                f"Could not read benchmark workload '{path}': {e}"
            ) from e
