from __future__ import annotations


def _parts(ms: int) -> tuple[int, int, int]:
    total_seconds = max(0, int(ms)) // 1000
    return total_seconds // 3600, (total_seconds % 3600) // 60, total_seconds % 60


def format_time(ms: int) -> str:
    """Format milliseconds as HH:MM:SS."""
    hours, minutes, seconds = _parts(ms)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_time_short(ms: int) -> str:
    """MM:SS under an hour, HH:MM:SS otherwise."""
    hours, minutes, seconds = _parts(ms)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
