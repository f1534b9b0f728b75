"""
Defines custom exceptions for the application to allow for more specific error handling.

Errors deriving from `FatalRunError` abort the entire prefill run. Any other
exception raised while processing a single app is isolated to that app.
"""


class SteamPrefillError(Exception):
    """Base exception for all application-specific errors."""


class FatalRunError(SteamPrefillError):
    """Base for errors that mean no further app in the run can be prefilled."""


class LancacheNotFoundError(FatalRunError):
    """Raised when no Lancache instance can be reached on the network."""


class UserCancelledError(FatalRunError):
    """Raised when the user explicitly cancels the run."""


class InfiniteLoopError(FatalRunError):
    """Raised when a download keeps retrying without making any progress."""


class EntitlementQueryError(FatalRunError):
    """Raised when the account's package info could not be retrieved from Steam."""


class EntitlementCacheError(SteamPrefillError):
    """Raised when the entitlement snapshot is unavailable or cannot be saved."""


class ConfigurationError(SteamPrefillError):
    """Raised for issues related to configuration loading or validation."""


class SelectionStoreError(SteamPrefillError):
    """Raised when the saved app selection exists but cannot be read."""


class SuccessStoreError(SteamPrefillError):
    """Raised when the depot success state cannot be read or written."""


class DownloadIncompleteError(SteamPrefillError):
    """Raised when the transfer executor reports that not every chunk was downloaded."""


class PopularGamesError(SteamPrefillError):
    """Raised when the list of popular games could not be retrieved."""


class BenchmarkWorkloadError(SteamPrefillError):
    """Raised when a benchmark workload file cannot be written or read back."""
