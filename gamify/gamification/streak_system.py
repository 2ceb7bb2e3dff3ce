"""
Streak Tracker

Consecutive-day counters per (user, activity type). All dates are reduced
to calendar days in GAMIFY_TIMEZONE before comparing.

Update rules (days = activity day - last activity day):
- no streak yet: start at 1
- days == 0: same day, counter unchanged
- days == 1: counter + 1, longest raised if exceeded, milestone check
- days > 1: counter back to 1 (longest and paid milestones are kept)
- days < 0: activity older than the last one, ignored

Milestones pay a one-time bonus through the points ledger.
"""

from typing import List, Optional, Tuple, Union, TYPE_CHECKING
from datetime import date, datetime
import logging

from gamify.db.store import GamificationStore
from gamify.models import Streak, StreakReward, StreakUpdate
from gamify.monitoring import track_streak_milestone
from gamify.resilience import retry_on_conflict
from gamify.utils.datetime_helpers import days_between, to_day, yesterday
from gamify.utils.locks import KeyedLock

if TYPE_CHECKING:
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)


MILESTONE_POINTS = {
    3: 10,
    7: 25,
    14: 50,
    30: 100,
    60: 250,
    100: 500,
    365: 1000,
}

STREAK_MILESTONE_SOURCE = "streak_milestone"


def milestone_reward(day: int) -> str:
    return f"{day}-day streak!"


class StreakTracker:
    def __init__(self, store: GamificationStore, ledger: "PointsLedger"):
        self.store = store
        self.ledger = ledger
        self._locks = KeyedLock("streak")

    async def update_streak(
        self,
        user_id: str,
        streak_type: str,
        activity_date: Union[date, datetime, None] = None
    ) -> StreakUpdate:
        """
        Record an activity for (user_id, streak_type)

        Args:
            user_id: Acting user
            streak_type: Activity type, e.g. "daily_tasks"
            activity_date: When the activity happened (defaults to now)

        Returns:
            StreakUpdate with the stored streak, whether a new longest run
            was set, the milestone reward (if any) and its bonus points
        """
        day = to_day(activity_date)

        async with self._locks.hold((user_id, streak_type)):
            update, milestone = await retry_on_conflict(self._apply, user_id, streak_type, day)

            if milestone is not None:
                track_streak_milestone(milestone)
                await self.ledger.award(
                    user_id,
                    update.bonus_points,
                    STREAK_MILESTONE_SOURCE,
                    f"{milestone}-day {streak_type} streak: {update.reward}",
                    metadata={"streak_type": streak_type, "milestone": milestone},
                    event_id=f"streak_milestone:{streak_type}:{milestone}",
                )

        return update

    async def _apply(self, user_id: str, streak_type: str, day: date) -> Tuple[StreakUpdate, Optional[int]]:
        streak = await self.store.get_streak(user_id, streak_type)

        if streak is None:
            created = await self.store.save_streak(
                Streak(
                    user_id=user_id,
                    type=streak_type,
                    consecutive_days=1,
                    longest_streak=1,
                    last_activity=day,
                )
            )
            logger.info(f"Started {streak_type} streak for user {user_id}")
            return StreakUpdate(streak=created, is_new_record=True), None

        gap = days_between(streak.last_activity, day)

        if gap < 0:
            logger.warning(
                f"Ignoring {streak_type} activity for user {user_id} dated {day}, "
                f"before last activity {streak.last_activity}"
            )
            return StreakUpdate(streak=streak, ignored=True), None

        if gap == 0:
            return StreakUpdate(streak=streak), None

        is_new_record = False
        milestone = None
        reward = None

        if gap == 1:
            consecutive = streak.consecutive_days + 1
            longest = streak.longest_streak
            if consecutive > longest:
                longest = consecutive
                is_new_record = True

            rewards = list(streak.rewards_received)
            if consecutive in MILESTONE_POINTS and not streak.has_reward_for(consecutive):
                milestone = consecutive
                reward = milestone_reward(consecutive)
                rewards.append(StreakReward(day=consecutive, reward=reward))

            changed = streak.model_copy(update={
                "consecutive_days": consecutive,
                "longest_streak": longest,
                "last_activity": day,
                "rewards_received": rewards,
            })
            logger.info(f"User {user_id} {streak_type} streak continues: {consecutive} days")
        else:
            changed = streak.model_copy(update={
                "consecutive_days": 1,
                "last_activity": day,
            })
            logger.info(
                f"User {user_id} {streak_type} streak broken after {streak.consecutive_days} days "
                f"(gap of {gap} days)"
            )

        saved = await self.store.save_streak(changed)
        update = StreakUpdate(
            streak=saved,
            is_new_record=is_new_record,
            reward=reward,
            bonus_points=MILESTONE_POINTS.get(milestone, 0) if milestone else 0,
        )
        return update, milestone

    async def get_current_streak(self, user_id: str, streak_type: str) -> Optional[Streak]:
        return await self.store.get_streak(user_id, streak_type)

    async def get_user_streaks(self, user_id: str) -> List[Streak]:
        """All streaks of the user, longest current run first"""
        return await self.store.get_user_streaks(user_id)

    async def is_at_risk(self, user_id: str, streak_type: str) -> bool:
        """True when the streak breaks unless an activity is recorded today"""
        streak = await self.store.get_streak(user_id, streak_type)
        if streak is None:
            return False
        return streak.consecutive_days > 0 and streak.last_activity == yesterday()
