"""XP curve: cumulative XP to level and progress.

Level n costs BASE_XP + (n - 1) * SCALE_FACTOR XP on top of level n - 1:

    level 1 ->   100 XP total
    level 2 ->   250 XP total
    level 3 ->   450 XP total
    ...
    level 30 -> 24750 XP total (cap, prestige becomes available)

``level`` is always derived from ``xp``. Anything persisted alongside xp is a
cache of ``level_from_xp``.
"""

from __future__ import annotations

BASE_XP = 100
SCALE_FACTOR = 50
MAX_LEVEL = 30


def xp_required_for_level(level: int) -> int:
    """XP needed to go from ``level - 1`` to ``level``."""
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    return BASE_XP + (level - 1) * SCALE_FACTOR


def total_xp_for_level(level: int) -> int:
    """Cumulative XP at which ``level`` is reached."""
    if level <= 0:
        return 0
    return level * BASE_XP + SCALE_FACTOR * level * (level - 1) // 2


MAX_LEVEL_XP = total_xp_for_level(MAX_LEVEL)


def level_from_xp(xp: int) -> int:
    """Level for a cumulative XP amount, capped at MAX_LEVEL."""
    if xp <= 0:
        return 0
    level = 0
    while level < MAX_LEVEL and xp >= total_xp_for_level(level + 1):
        level += 1
    return level


def compute_level(xp: int) -> dict:
    """Compute level info from cumulative XP.

    Negative XP is treated as zero. At the cap progress is 100 and there is
    nothing left to earn.
    """
    xp = max(xp, 0)
    level = level_from_xp(xp)
    floor_xp = total_xp_for_level(level)

    if level >= MAX_LEVEL:
        return {
            "level": MAX_LEVEL,
            "progress": 100,
            "xp_into_level": xp - floor_xp,
            "xp_for_next_level": 0,
            "xp_to_next_level": 0,
            "total_xp_for_level": floor_xp,
            "is_max_level": True,
        }

    xp_into_level = xp - floor_xp
    xp_for_next = xp_required_for_level(level + 1)

    return {
        "level": level,
        "progress": xp_into_level * 100 // xp_for_next,
        "xp_into_level": xp_into_level,
        "xp_for_next_level": xp_for_next,
        "xp_to_next_level": xp_for_next - xp_into_level,
        "total_xp_for_level": floor_xp,
        "is_max_level": False,
    }


def level_table() -> list[dict]:
    """The whole curve, one row per level."""
    return [
        {
            "level": n,
            "xp_required": xp_required_for_level(n),
            "cumulative": total_xp_for_level(n),
        }
        for n in range(1, MAX_LEVEL + 1)
    ]
