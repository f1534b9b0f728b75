"""
Helper functions for formatting sizes, durations and transfer rates.
"""

SIZE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")
BITRATE_UNITS = ("bit/s", "Kbit/s", "Mbit/s", "Gbit/s")


def _scale(value: float, step: int, units: tuple[str, ...]) -> tuple[float, str]:
    i = 0
    while value >= step and i < len(units) - 1:
        value /= step
        i += 1
    return value, units[i]


def format_size(bytes_size: float) -> str:
    """Formats a byte count using binary units (e.g., '14.2 GiB')."""
    if bytes_size <= 0:
        return "0 B"
    value, unit = _scale(float(bytes_size), 1024, SIZE_UNITS)
    if unit == "B":
        return f"{int(value)} B"
    return f"{value:.2f} {unit}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration for the per-app and summary output (e.g., '1h 04m 12s').

    Sub-second durations are shown in milliseconds, since already cached apps
    often finish that quickly.
    """
    if seconds < 1:
        return f"{max(seconds, 0) * 1000:.0f}ms"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{seconds:.1f}s"


def format_bitrate(bytes_transferred: int, seconds: float) -> str:
    """Formats an average transfer rate in bits per second (e.g., '812.40 Mbit/s')."""
    if seconds <= 0 or bytes_transferred <= 0:
        return "0 bit/s"
    # Network rates are decimal, unlike file sizes
    value, unit = _scale(bytes_transferred * 8 / seconds, 1000, BITRATE_UNITS)
    return f"{value:.2f} {unit}"
