"""
Level Calculator

Maps a points total to a level. Levels are static reference data sorted by
points_required; the current level is the highest one whose threshold the
total has reached.
"""

from typing import List, Optional
import logging

from gamify.db.store import GamificationStore
from gamify.models import Level, LevelProgress, LevelUpEvent
from gamify.monitoring import track_level_up

logger = logging.getLogger(__name__)


DEFAULT_LEVELS = [
    Level(level=1, points_required=0, name="Rookie", color="#9e9e9e"),
    Level(level=2, points_required=100, name="Contributor", color="#8bc34a"),
    Level(level=3, points_required=250, name="Achiever", color="#4caf50"),
    Level(level=4, points_required=500, name="Specialist", color="#03a9f4"),
    Level(level=5, points_required=1000, name="Expert", color="#3f51b5"),
    Level(level=6, points_required=2000, name="Master", color="#9c27b0"),
    Level(level=7, points_required=3500, name="Champion", color="#ff9800"),
    Level(level=8, points_required=5000, name="Legend", color="#f44336"),
]


def calculate_level_progress(total_points: int, levels: List[Level]) -> LevelProgress:
    """
    Pure level/progress calculation

    Below the first threshold the user is at level 0 and working toward
    the first level. With no following level progress is 100.
    """
    ordered = sorted(levels, key=lambda lv: lv.level)

    current: Optional[Level] = None
    following: Optional[Level] = ordered[0] if ordered else None
    for i, level in enumerate(ordered):
        if total_points >= level.points_required:
            current = level
            following = ordered[i + 1] if i + 1 < len(ordered) else None
        else:
            break

    points_current = current.points_required if current else 0
    points_next = following.points_required if following else None

    if points_next is None or points_next <= points_current:
        progress = 100.0
    else:
        progress = (total_points - points_current) / (points_next - points_current) * 100
        progress = min(100.0, max(0.0, progress))

    return LevelProgress(
        total_points=total_points,
        current_level=current.level if current else 0,
        next_level=following.level if following else None,
        points_current=points_current,
        points_next=points_next,
        progress=progress,
    )


class LevelCalculator:
    """Level queries plus level-up detection against the last known level"""

    def __init__(self, store: GamificationStore):
        self.store = store

    async def get_levels(self) -> List[Level]:
        """Configured levels ascending; the built-in table when none are stored"""
        levels = await self.store.get_levels()
        return levels or list(DEFAULT_LEVELS)

    async def seed_default_levels(self) -> List[Level]:
        """Store DEFAULT_LEVELS unless levels already exist"""
        existing = await self.store.get_levels()
        if existing:
            return existing
        for level in DEFAULT_LEVELS:
            await self.store.save_level(level)
        logger.info(f"Seeded {len(DEFAULT_LEVELS)} default levels")
        return list(DEFAULT_LEVELS)

    async def get_level_progress(self, user_id: str) -> LevelProgress:
        total = await self.store.sum_points(user_id)
        return calculate_level_progress(total, await self.get_levels())

    async def check_level_up(self, user_id: str) -> int:
        """Current level, recomputed from the ledger (query only, writes nothing)"""
        progress = await self.get_level_progress(user_id)
        return progress.current_level

    async def detect_level_up(self, user_id: str) -> Optional[LevelUpEvent]:
        """
        Swap the stored last known level with the current one

        Returns:
            LevelUpEvent when the level went up since the last swap, else None.
            A user with no stored level is compared against the level of a
            zero-point total.
        """
        levels = await self.get_levels()
        total = await self.store.sum_points(user_id)
        current_level = calculate_level_progress(total, levels).current_level
        previous = await self.store.swap_last_known_level(user_id, current_level)

        if previous is None:
            previous = calculate_level_progress(0, levels).current_level
        if current_level <= previous:
            return None

        track_level_up()
        logger.info(f"User {user_id} leveled up: {previous} -> {current_level}")
        return LevelUpEvent(user_id=user_id, old_level=previous, new_level=current_level)
