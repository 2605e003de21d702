from __future__ import annotations

from typing import Optional

_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB", "TB")


def format_size(size: Optional[int]) -> Optional[str]:
    """Human readable size ("1.5 KB"); None stays None."""
    if size is None:
        return None

    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(_UNITS) - 1:
        value /= 1024
        unit_index += 1

    return f"{round(value, 2):g} {_UNITS[unit_index]}"
