"""
Social badges

Badges users give each other as peer recognition. A recipient can get the
same social badge at most once per calendar day; the first grant creates
the UserBadge, every grant is recorded and pays the rarity points.
"""

from typing import List, Optional, TYPE_CHECKING
import logging

from gamify.db.store import GamificationStore
from gamify.exceptions import DuplicateSocialBadgeError, RecordNotFoundError, SocialBadgeError
from gamify.gamification.badge_system import get_badge_points
from gamify.models import Badge, SocialBadgeGrant, UserBadge
from gamify.utils.datetime_helpers import start_of_day, today
from gamify.utils.locks import KeyedLock

if TYPE_CHECKING:
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)

SOCIAL_BADGE_SOURCE = "social_badge"


class SocialBadges:
    def __init__(self, store: GamificationStore, ledger: "PointsLedger"):
        self.store = store
        self.ledger = ledger
        self._locks = KeyedLock("social_badge")

    async def get_social_badges(self) -> List[Badge]:
        return await self.store.get_badges(social=True)

    async def give_social_badge(
        self,
        from_user_id: str,
        to_user_id: str,
        badge_id: str,
        message: Optional[str] = None
    ) -> SocialBadgeGrant:
        """
        Give a social badge to another user

        Raises:
            SocialBadgeError: self-give or badge is not a social badge
            RecordNotFoundError: unknown badge
            DuplicateSocialBadgeError: recipient already got this badge today
        """
        if from_user_id == to_user_id:
            raise SocialBadgeError(
                "Cannot give a badge to yourself",
                field="to_user_id",
                value=to_user_id,
                user_id=from_user_id,
                operation="give_social_badge",
            )

        badge = await self.store.get_badge(badge_id)
        if badge is None:
            raise RecordNotFoundError(
                f"Badge {badge_id} not found",
                record_type="badge",
                record_id=badge_id,
                user_id=from_user_id,
                operation="give_social_badge",
            )

        if not badge.social_badge:
            raise SocialBadgeError(
                f"Badge '{badge.name}' is not a social badge",
                field="badge_id",
                value=badge_id,
                user_id=from_user_id,
                operation="give_social_badge",
            )

        async with self._locks.hold((to_user_id, badge_id)):
            given_today = await self.store.count_social_badge_grants(
                to_user_id, badge_id, since=start_of_day(today())
            )
            if given_today > 0:
                raise DuplicateSocialBadgeError(badge_id, to_user_id, user_id=from_user_id)

            grant = await self.store.add_social_badge_grant(
                SocialBadgeGrant(
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                    badge_id=badge_id,
                    message=message,
                )
            )

        await self.store.insert_user_badge(UserBadge(user_id=to_user_id, badge_id=badge_id))
        logger.info(f"User {from_user_id} gave social badge '{badge.name}' to user {to_user_id}")

        points = get_badge_points(badge.rarity)
        if points > 0:
            await self.ledger.award(
                to_user_id,
                points,
                SOCIAL_BADGE_SOURCE,
                f"Social badge received: {badge.name}",
                metadata={"badge_id": badge_id, "from": from_user_id},
                event_id=f"social_badge:{grant.id}",
            )

        return grant

    async def get_user_social_badges(self, user_id: str) -> List[UserBadge]:
        """Social badges held by user_id, most recent first"""
        social_ids = {b.id for b in await self.store.get_badges(social=True)}
        return [ub for ub in await self.store.get_user_badges(user_id) if ub.badge_id in social_ids]
