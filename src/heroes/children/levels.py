"""Hero level computation.

Levels are flat bands of ``xp_per_level`` XP: level = total // band + 1 and
``xp`` is the progress inside the current band.
"""

from __future__ import annotations

from heroes.config import get_settings


def compute_level(total_xp: int, xp_per_level: int | None = None) -> dict:
    """Compute level info from lifetime XP."""
    if xp_per_level is None:
        xp_per_level = get_settings().xp_per_level
    total_xp = max(0, total_xp)
    return {
        "level": total_xp // xp_per_level + 1,
        "xp": total_xp % xp_per_level,
        "total_xp": total_xp,
        "xp_for_level": xp_per_level,
        "xp_to_next_level": xp_per_level - total_xp % xp_per_level,
    }
