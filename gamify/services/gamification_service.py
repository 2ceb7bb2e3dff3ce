"""
GamificationService - activity event integration

Turns one external activity event (task completed, report submitted, ...)
into the full set of gamification side effects: points with their
badge/level cascade, the matching streak, and challenge progress.
"""

import logging
from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime

from gamify.gamification.engine import GamificationEngine
from gamify.models import ChallengeStatus

logger = logging.getLogger(__name__)


ACTION_STREAK_TYPES = {
    "task_completed": "daily_tasks",
    "report_submitted": "reports",
    "training_completed": "training",
    "goal_completed": "goals",
}


class GamificationService:
    """
    Service for activity-driven gamification.

    Responsibilities:
    - Resolve and award points for an action
    - Update the streak that belongs to the action
    - Advance active challenges the user or their team takes part in
    """

    def __init__(self, engine: GamificationEngine):
        """
        Initialize GamificationService.

        Args:
            engine: GamificationEngine bound to a store
        """
        self.engine = engine
        logger.debug("GamificationService initialized")

    async def process_activity(
        self,
        user_id: str,
        action: str,
        department: Optional[str] = None,
        event_id: Optional[str] = None,
        team_id: Optional[str] = None,
        occurred_at: Union[date, datetime, None] = None,
        modifiers: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Process gamification for one activity.

        Args:
            user_id: Acting user
            action: Action tag, also used as the ledger source and objective type
            department: Department for points configuration lookup
            event_id: Idempotency key of the triggering event
            team_id: Team of the user, for team challenges
            occurred_at: When the activity happened (defaults to now)
            modifiers: Multiplier names applied to the base points

        Returns:
            {
                'points_awarded': int,
                'duplicate': bool,
                'badges_earned': list,  # badge names
                'level_up': bool,
                'new_level': int | None,
                'streak_type': str | None,
                'current_streak': int,
                'streak_reward': str | None,
                'challenges_updated': list  # challenge ids
            }
        """
        result: Dict[str, Any] = {
            'points_awarded': 0,
            'duplicate': False,
            'badges_earned': [],
            'level_up': False,
            'new_level': None,
            'streak_type': ACTION_STREAK_TYPES.get(action),
            'current_streak': 0,
            'streak_reward': None,
            'challenges_updated': [],
        }

        try:
            points = await self.engine.points.calculate_action_points(action, department, modifiers)
            # A zero-point entry still records event_id so a replay is recognized
            if points != 0 or event_id is not None:
                award = await self.engine.points.award(
                    user_id,
                    points,
                    action,
                    f"Activity: {action}",
                    metadata={"department": department, "team_id": team_id},
                    event_id=event_id,
                )
                if award.duplicate:
                    logger.info(f"Activity event {event_id} for user {user_id} already processed")
                    result['duplicate'] = True
                    return result

                result['points_awarded'] = points
                result['badges_earned'] = [badge.name for badge in award.badges_earned]
                if award.level_up is not None:
                    result['level_up'] = True
                    result['new_level'] = award.level_up.new_level

            streak_type = result['streak_type']
            if streak_type:
                update = await self.engine.streaks.update_streak(user_id, streak_type, occurred_at)
                result['current_streak'] = update.streak.consecutive_days
                result['streak_reward'] = update.reward

            result['challenges_updated'] = await self._advance_challenges(user_id, action, team_id)

            logger.info(
                f"Gamification processed for {action}: user={user_id}, "
                f"points={result['points_awarded']}, streak={result['current_streak']}, "
                f"badges={len(result['badges_earned'])}, challenges={len(result['challenges_updated'])}"
            )
            return result

        except Exception as e:
            logger.error(f"Error processing {action} for user {user_id}: {e}", exc_info=True)
            raise

    async def _advance_challenges(self, user_id: str, action: str, team_id: Optional[str]) -> List[str]:
        updated = []
        active = await self.engine.store.list_challenges(status=ChallengeStatus.ACTIVE)

        for challenge in active:
            if challenge.team_based:
                if team_id and team_id in challenge.participating_teams:
                    await self.engine.challenges.update_team_challenge_progress(
                        challenge.id, team_id, action, 1
                    )
                    updated.append(challenge.id)
            elif user_id in challenge.participants:
                await self.engine.challenges.update_user_challenge_progress(
                    challenge.id, user_id, action, 1
                )
                updated.append(challenge.id)

        return updated
