"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

VALID_OPERATING_SYSTEMS = ("windows", "macos", "linux")
VALID_ARCHITECTURES = ("x86", "x64", "arm64")

# Relative to config_dir, these files hold state the user would not want reset.
SELECTED_APPS_FILENAME = "selectedAppsToPrefill.json"
SUCCESS_STORE_FILENAME = "successfullyDownloadedDepots.sqlite"
BENCHMARK_WORKLOAD_FILENAME = "benchmarkWorkload.json"
SESSION_HISTORY_FILENAME = "session_history.jsonl"


class PrefillConfig(BaseModel):
    """A validated configuration model for the application."""

    # Prefill behaviour
    force: bool = False
    verbose: bool = False
    skip_downloads: bool = False
    benchmark_workers: int = 5

    # Depot filtering
    operating_systems: list[str] = Field(default_factory=lambda: ["windows"])
    cpu_architecture: str = "x64"
    language: str = "english"

    # Internal fields not loaded from INI file
    config_dir: Path = Field(..., repr=False)
    cache_dir: Path | None = Field(default=None, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("benchmark_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent benchmark apps."""
        if v < 1 or v > 32:
            raise ValueError("Benchmark workers must be between 1 and 32.")
        return v

    @field_validator("operating_systems")
    @classmethod
    def validate_operating_systems(cls, v: list[str]) -> list[str]:
        normalized = [os_name.strip().lower() for os_name in v if os_name.strip()]
        if not normalized:
            raise ValueError("At least one operating system must be selected.")
        if unknown := [o for o in normalized if o not in VALID_OPERATING_SYSTEMS]:
            raise ValueError(
                f"Unknown operating system(s): {', '.join(unknown)}. "
                f"Choose from {', '.join(VALID_OPERATING_SYSTEMS)}."
            )
        return list(dict.fromkeys(normalized))

    @field_validator("cpu_architecture")
    @classmethod
    def validate_architecture(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_ARCHITECTURES:
            raise ValueError(
                f"CPU architecture must be one of {', '.join(VALID_ARCHITECTURES)}."
            )
        return v

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        if not v:
            raise ValueError("Language cannot be empty.")
        return v.lower()

    @property
    def temp_dir(self) -> Path:
        """Cached metadata lives here; everything in it can be deleted safely."""
        return self.cache_dir or self.config_dir / "cache"

    @property
    def selected_apps_path(self) -> Path:
        return self.config_dir / SELECTED_APPS_FILENAME

    @property
    def success_store_path(self) -> Path:
        return self.config_dir / SUCCESS_STORE_FILENAME

    @property
    def benchmark_workload_path(self) -> Path:
        """Generated by benchmark capture, portable and can be moved with the app."""
        return self.config_dir / BENCHMARK_WORKLOAD_FILENAME

    @property
    def session_history_path(self) -> Path:
        return self.config_dir / SESSION_HISTORY_FILENAME

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_dir", "cache_dir"}
        return {key for key in cls.model_fields if key not in internal_fields}
