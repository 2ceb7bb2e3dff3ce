"""
Points Ledger

Append-only record of point grants. Every award is one immutable
PointEntry; totals are always aggregated from the full ledger.

Award cascade:
    award() -> BadgeEvaluator.check_badges() -> award(badge bonus) -> ...
    then, at the top of the cascade, the level is recomputed and compared
    with the user's last known level to emit a LevelUpEvent.

The recursion carries a depth counter; past MAX_CASCADE_DEPTH the entry is
still written but badge evaluation is skipped.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING
from datetime import datetime
import logging

from gamify import config
from gamify.db.store import GamificationStore
from gamify.models import AwardResult, GamificationConfig, PointEntry
from gamify.monitoring import track_points_awarded
from gamify.utils.cache import TTLCache
from gamify.utils.numbers import round_half_up

if TYPE_CHECKING:
    from gamify.gamification.badge_system import BadgeEvaluator
    from gamify.gamification.level_system import LevelCalculator

logger = logging.getLogger(__name__)


class PointsLedger:
    """Writes point entries and answers total/config queries"""

    def __init__(self, store: GamificationStore, total_cache_ttl: Optional[float] = None):
        self.store = store
        self.badge_evaluator: Optional["BadgeEvaluator"] = None
        self.level_calculator: Optional["LevelCalculator"] = None
        if total_cache_ttl is None:
            total_cache_ttl = config.POINTS_TOTAL_CACHE_TTL
        self._totals = TTLCache(ttl=total_cache_ttl)

    async def award(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        cascade_depth: int = 0
    ) -> AwardResult:
        """
        Append a point entry and run the badge/level cascade for user_id

        Args:
            user_id: Receiving user
            amount: Signed number of points
            source: Tag such as "task_completed" or "badge_earned"
            description: Human readable reason
            metadata: Free-form context stored with the entry
            event_id: Idempotency key; a repeated (user_id, event_id) is not reapplied
            cascade_depth: Recursion depth inside a cascade (0 for external calls)

        Returns:
            AwardResult with the stored entry, badges earned during the
            cascade and the level-up event if one was detected
        """
        entry = PointEntry(
            user_id=user_id,
            amount=amount,
            source=source,
            description=description,
            metadata=metadata or {},
            event_id=event_id,
        )

        stored, created = await self.store.add_point_entry(entry)
        if not created:
            logger.info(f"Award for user {user_id} with event {event_id} already recorded, skipping")
            return AwardResult(entry=stored, duplicate=True)

        self._totals.invalidate(user_id)
        track_points_awarded(source, amount)
        logger.info(f"Awarded {amount} points to user {user_id} (source={source}, depth={cascade_depth})")

        result = AwardResult(entry=stored)

        if cascade_depth >= config.MAX_CASCADE_DEPTH:
            logger.warning(
                f"Cascade depth {cascade_depth} reached limit {config.MAX_CASCADE_DEPTH} "
                f"for user {user_id}; badge evaluation skipped"
            )
            result.cascade_skipped = True
        elif self.badge_evaluator is not None:
            result.badges_earned = await self.badge_evaluator.check_badges(
                user_id, source=source, cascade_depth=cascade_depth + 1
            )

        # Nested bonus awards are already reflected in the total by now
        if cascade_depth == 0 and self.level_calculator is not None:
            result.level_up = await self.level_calculator.detect_level_up(user_id)

        return result

    async def get_total(self, user_id: str) -> int:
        """Sum of every entry for user_id, aggregated from the full ledger"""
        return await self.store.sum_points(user_id)

    async def get_total_cached(self, user_id: str) -> int:
        """Eventually-refreshed total for frequent readers (never used by the cascade)"""
        cached = self._totals.get(user_id)
        if cached is not None:
            return cached
        total = await self.get_total(user_id)
        self._totals.set(user_id, total)
        return total

    async def get_total_for_period(self, user_id: str, start: datetime, end: datetime) -> int:
        return await self.store.sum_points(user_id, since=start, until=end)

    async def get_points_history(self, user_id: str, limit: int = 50) -> List[PointEntry]:
        """Most recent entries first"""
        return await self.store.get_point_entries(user_id, limit=limit)

    async def get_points_config(self, action: str, department: Optional[str] = None) -> int:
        """
        Base points for an action

        Department-specific config wins; otherwise the global (department
        None) config; otherwise 0. Inactive configs are ignored.
        """
        if department:
            dept_config = await self.store.get_points_config(action, department)
            if dept_config is not None:
                return dept_config.base_points

        global_config = await self.store.get_points_config(action, None)
        return global_config.base_points if global_config is not None else 0

    async def calculate_action_points(
        self,
        action: str,
        department: Optional[str] = None,
        modifiers: Optional[List[str]] = None
    ) -> int:
        """
        Base points scaled by the config's multipliers for each modifier

        Unknown modifiers are ignored. The result is rounded half-up.
        """
        base = await self.get_points_config(action, department)
        if not modifiers or base == 0:
            return base

        points_config = None
        if department:
            points_config = await self.store.get_points_config(action, department)
        if points_config is None:
            points_config = await self.store.get_points_config(action, None)
        if points_config is None:
            return base

        value = float(base)
        for modifier in modifiers:
            multiplier = points_config.multipliers.get(modifier)
            if multiplier is not None:
                value *= multiplier
        return round_half_up(value)

    async def save_points_config(self, points_config: GamificationConfig) -> GamificationConfig:
        saved = await self.store.save_points_config(points_config)
        logger.info(
            f"Saved points config {saved.action} "
            f"(department={saved.department or 'global'}, base={saved.base_points}, active={saved.active})"
        )
        return saved
