"""
Badge Evaluator

Scans every automatic badge the user does not hold yet, measures progress
against its criteria and grants the badge once the target is reached.

Criteria types:
- count / combo: number of ledger entries whose source matches the tag in
  front of the first ':' of the criteria description (falls back to the
  source of the triggering award)
- threshold: the user's total points

Granting is guarded by the unique (user, badge) insert, so only one of two
concurrent evaluations crossing the threshold pays the rarity bonus.
"""

from typing import Dict, List, Optional, TYPE_CHECKING
import logging

from gamify.db.store import GamificationStore
from gamify.models import (
    Badge,
    BadgeCriteria,
    BadgeProgress,
    BadgeRarity,
    CriteriaType,
    UserBadge,
)
from gamify.monitoring import track_badge_earned
from gamify.utils.datetime_helpers import now_utc

if TYPE_CHECKING:
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)


BADGE_RARITY_POINTS: Dict[BadgeRarity, int] = {
    BadgeRarity.COMMON: 10,
    BadgeRarity.RARE: 50,
    BadgeRarity.EPIC: 150,
    BadgeRarity.LEGENDARY: 500,
}

BADGE_EARNED_SOURCE = "badge_earned"


def get_badge_points(rarity: BadgeRarity) -> int:
    return BADGE_RARITY_POINTS.get(rarity, 0)


def criteria_source_tag(criteria: BadgeCriteria, source: Optional[str] = None) -> Optional[str]:
    """Ledger source counted by a count/combo criteria"""
    tag = criteria.description.split(":")[0].strip()
    return tag or source


class BadgeEvaluator:
    """Automatic badge granting and badge read models"""

    def __init__(self, store: GamificationStore, ledger: "PointsLedger"):
        self.store = store
        self.ledger = ledger

    async def create_badge(self, badge: Badge, criteria: Optional[BadgeCriteria] = None) -> Badge:
        """Store a badge definition together with its criteria"""
        if criteria is not None:
            criteria.badge_id = badge.id
            await self.store.save_badge_criteria(criteria)
            badge.criteria_id = criteria.id
        saved = await self.store.save_badge(badge)
        logger.info(f"Created badge '{saved.name}' ({saved.rarity.value}, social={saved.social_badge})")
        return saved

    async def _measure(self, user_id: str, criteria: BadgeCriteria, source: Optional[str]) -> int:
        if criteria.type == CriteriaType.THRESHOLD:
            return await self.store.sum_points(user_id)

        tag = criteria_source_tag(criteria, source)
        if not tag:
            return 0
        return await self.store.count_point_entries(user_id, tag)

    async def check_badges(
        self,
        user_id: str,
        source: Optional[str] = None,
        cascade_depth: int = 1
    ) -> List[Badge]:
        """
        Evaluate every unearned automatic badge for user_id

        Args:
            user_id: User to evaluate
            source: Source of the triggering award (fallback criteria tag)
            cascade_depth: Depth passed on to bonus awards

        Returns:
            Badges earned during this evaluation, including badges earned by
            the bonus awards it triggered
        """
        earned: List[Badge] = []

        for badge in await self.store.get_badges(social=False):
            if await self.store.user_has_badge(user_id, badge.id):
                continue
            if not badge.criteria_id:
                continue

            criteria = await self.store.get_badge_criteria(badge.criteria_id)
            if criteria is None:
                logger.warning(f"Badge {badge.id} references missing criteria {badge.criteria_id}")
                continue

            progress = await self._measure(user_id, criteria, source)

            await self.store.save_badge_progress(
                BadgeProgress(
                    user_id=user_id,
                    badge_id=badge.id,
                    current=progress,
                    target=criteria.value,
                    updated_at=now_utc(),
                )
            )
            # Shared last-writer value, kept for display
            criteria.current_progress = progress
            await self.store.save_badge_criteria(criteria)

            if progress < criteria.value:
                continue

            inserted = await self.store.insert_user_badge(UserBadge(user_id=user_id, badge_id=badge.id))
            if not inserted:
                logger.info(f"Badge {badge.name} already granted to user {user_id} by a concurrent evaluation")
                continue

            track_badge_earned(badge.rarity.value)
            logger.info(f"User {user_id} earned badge '{badge.name}' ({badge.rarity.value})")
            earned.append(badge)

            bonus = await self.ledger.award(
                user_id,
                get_badge_points(badge.rarity),
                BADGE_EARNED_SOURCE,
                f"Badge earned: {badge.name}",
                metadata={"badge_id": badge.id},
                event_id=f"badge_earned:{badge.id}",
                cascade_depth=cascade_depth,
            )
            earned.extend(bonus.badges_earned)

        return earned

    async def get_user_badges(self, user_id: str) -> List[UserBadge]:
        """Badges held by the user, most recent first"""
        return await self.store.get_user_badges(user_id)

    async def get_badge_progress(self, user_id: str) -> List[BadgeProgress]:
        """Per-user progress toward badges the user has not earned yet"""
        held = {ub.badge_id for ub in await self.store.get_user_badges(user_id)}
        return [p for p in await self.store.get_badge_progress(user_id) if p.badge_id not in held]
