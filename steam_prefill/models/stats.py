"""
Dataclass for tracking the outcome counters of a prefill run.
"""

from dataclasses import dataclass, field
from enum import Enum


class AppOutcome(Enum):
    """The single terminal outcome of one app within a run."""

    UPDATED = "updated"
    ALREADY_UP_TO_DATE = "already_up_to_date"
    NO_DEPOTS_MATCHED = "no_depots_matched"
    FAILED = "failed"
    UNOWNED = "unowned"


@dataclass
class PrefillSummary:
    """Tracks per-outcome counters for a prefill run. Not persisted across runs."""

    updated: int = 0
    already_up_to_date: int = 0
    no_depots_matched: int = 0
    failed_apps: int = 0
    unowned_apps_skipped: int = 0
    total_bytes_queued: int = 0
    outcomes: dict[int, AppOutcome] = field(default_factory=dict, repr=False)
    failed_app_names: list[str] = field(default_factory=list)
    unowned_app_names: list[str] = field(default_factory=list)

    def record(self, app_id: int, outcome: AppOutcome, name: str | None = None) -> None:
        """
        Counts the outcome of an app.

        Raises:
            ValueError: If an outcome was already recorded for this app in this run.
        """
        if app_id in self.outcomes:
            raise ValueError(
                f"Outcome for app {app_id} was already recorded as "
                f"{self.outcomes[app_id].value}."
            )
        self.outcomes[app_id] = outcome
        display_name = name or f"App {app_id}"

        if outcome is AppOutcome.UPDATED:
            self.updated += 1
        elif outcome is AppOutcome.ALREADY_UP_TO_DATE:
            self.already_up_to_date += 1
        elif outcome is AppOutcome.NO_DEPOTS_MATCHED:
            self.no_depots_matched += 1
        elif outcome is AppOutcome.FAILED:
            self.failed_apps += 1
            self.failed_app_names.append(display_name)
        elif outcome is AppOutcome.UNOWNED:
            self.unowned_apps_skipped += 1
            self.unowned_app_names.append(display_name)

    @property
    def apps_processed(self) -> int:
        """Apps that entered the pipeline (every recorded app except unowned ones)."""
        return len(self.outcomes) - self.unowned_apps_skipped

    def as_dict(self) -> dict[str, int]:
        return {
            "updated": self.updated,
            "already_up_to_date": self.already_up_to_date,
            "no_depots_matched": self.no_depots_matched,
            "failed_apps": self.failed_apps,
            "unowned_apps_skipped": self.unowned_apps_skipped,
            "total_bytes_queued": self.total_bytes_queued,
        }
