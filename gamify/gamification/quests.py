"""
Quest Engine

Quests are personal storylines: each user starts a quest on their own and
reports progress per objective. Progress values are absolute and capped at
the objective target. The first time every objective is complete the
progress row becomes completed and the quest rewards are paid once.
"""

from typing import List, Optional, TYPE_CHECKING
import logging

from gamify.db.store import GamificationStore
from gamify.exceptions import ConcurrencyError, RecordNotFoundError, ValidationError
from gamify.models import (
    Quest,
    QuestProgress,
    QuestProgressStatus,
    QuestStatus,
    TransactionType,
    UserBadge,
)
from gamify.models.challenge import ObjectiveProgress
from gamify.monitoring import track_quest_completed
from gamify.resilience import retry_on_conflict
from gamify.utils.datetime_helpers import now_utc
from gamify.utils.locks import KeyedLock

if TYPE_CHECKING:
    from gamify.gamification.currency_system import CurrencyLedger
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)

QUEST_COMPLETED_SOURCE = "quest_completed"


def set_objective_progress(quest: Quest, progress: QuestProgress, objective_index: int, current: int) -> QuestProgress:
    """Set one objective's absolute progress and recompute status (pure)"""
    by_index = {p.objective_index: p for p in progress.progress}
    items: List[ObjectiveProgress] = []

    for i, objective in enumerate(quest.objectives):
        item = by_index.get(i) or ObjectiveProgress(objective_index=i)
        if i == objective_index:
            value = min(current, objective.target)
            item = ObjectiveProgress(objective_index=i, current=value, completed=value >= objective.target)
        items.append(item)

    update = {"progress": items}
    if progress.status != QuestProgressStatus.COMPLETED and items and all(item.completed for item in items):
        update["status"] = QuestProgressStatus.COMPLETED
        update["completed_at"] = now_utc()
    return progress.model_copy(update=update)


class QuestEngine:
    def __init__(
        self,
        store: GamificationStore,
        ledger: "PointsLedger",
        currency: "CurrencyLedger"
    ):
        self.store = store
        self.ledger = ledger
        self.currency = currency
        self._progress_locks = KeyedLock("quest_progress")

    async def create_quest(self, quest: Quest) -> Quest:
        if not quest.objectives:
            raise ValidationError("A quest needs at least one objective", field="objectives")
        saved = await self.store.save_quest(quest)
        logger.info(f"Created quest '{saved.title}' with {len(saved.objectives)} objectives")
        return saved

    async def get_quest(self, quest_id: str, operation: str = "get_quest") -> Quest:
        quest = await self.store.get_quest(quest_id)
        if quest is None:
            raise RecordNotFoundError(
                f"Quest {quest_id} not found",
                record_type="quest",
                record_id=quest_id,
                operation=operation,
            )
        return quest

    async def list_quests(self, status: Optional[QuestStatus] = None) -> List[Quest]:
        return await self.store.list_quests(QuestStatus(status) if status is not None else None)

    async def get_user_quests(
        self,
        user_id: str,
        status: Optional[QuestProgressStatus] = None
    ) -> List[QuestProgress]:
        return await self.store.list_quest_progress(user_id, status)

    async def start_quest(self, quest_id: str, user_id: str) -> QuestProgress:
        """
        Begin a quest for user_id with zeroed progress (idempotent)

        Raises:
            RecordNotFoundError: unknown quest
            ValidationError: a prerequisite quest is not completed by the user
        """
        quest = await self.get_quest(quest_id, "start_quest")

        existing = await self.store.get_quest_progress(quest_id, user_id)
        if existing is not None:
            return existing

        for prerequisite in quest.prerequisites:
            done = await self.store.get_quest_progress(prerequisite, user_id)
            if done is None or not done.completed:
                raise ValidationError(
                    f"Quest {quest_id} requires quest {prerequisite} to be completed first",
                    field="prerequisites",
                    value=prerequisite,
                    user_id=user_id,
                    operation="start_quest",
                )

        try:
            saved = await self.store.save_quest_progress(QuestProgress.start(quest, user_id))
        except ConcurrencyError:
            # Started concurrently by another request
            return await self.store.get_quest_progress(quest_id, user_id)

        logger.info(f"User {user_id} started quest {quest_id}")
        return saved

    async def update_quest_progress(
        self,
        quest_id: str,
        user_id: str,
        objective_index: int,
        current: int
    ) -> QuestProgress:
        """
        Set the absolute progress of one objective

        Completing the last objective marks the quest completed and pays
        its rewards. Payouts carry deterministic event ids, so a retried
        write never pays twice.

        Raises:
            RecordNotFoundError: unknown quest, or the user has not started it
            ValidationError: objective_index out of range or negative current
        """
        quest = await self.get_quest(quest_id, "update_quest_progress")
        if not 0 <= objective_index < len(quest.objectives):
            raise ValidationError(
                f"Quest {quest_id} has no objective {objective_index}",
                field="objective_index",
                value=objective_index,
                user_id=user_id,
                operation="update_quest_progress",
            )
        if current < 0:
            raise ValidationError(
                "Progress cannot be negative",
                field="current",
                value=current,
                user_id=user_id,
                operation="update_quest_progress",
            )

        async def _apply() -> QuestProgress:
            progress = await self.store.get_quest_progress(quest_id, user_id)
            if progress is None:
                raise RecordNotFoundError(
                    f"User {user_id} has not started quest {quest_id}",
                    record_type="quest_progress",
                    record_id=f"{quest_id}:{user_id}",
                    operation="update_quest_progress",
                )
            changed = set_objective_progress(quest, progress, objective_index, current)
            if changed.completed and not progress.completed:
                await self._pay_rewards(quest, user_id)
            return await self.store.save_quest_progress(changed)

        async with self._progress_locks.hold((quest_id, user_id)):
            was_completed = await self._is_completed(quest_id, user_id)
            saved = await retry_on_conflict(_apply)

        if saved.completed and not was_completed:
            track_quest_completed()
            logger.info(f"User {user_id} completed quest {quest_id}")
        return saved

    async def _is_completed(self, quest_id: str, user_id: str) -> bool:
        progress = await self.store.get_quest_progress(quest_id, user_id)
        return progress is not None and progress.completed

    async def _pay_rewards(self, quest: Quest, user_id: str) -> None:
        description = f"Quest completed: {quest.title}"
        metadata = {"quest_id": quest.id}
        event_prefix = f"quest:{quest.id}:user:{user_id}"

        if quest.rewards.points > 0:
            await self.ledger.award(
                user_id,
                quest.rewards.points,
                QUEST_COMPLETED_SOURCE,
                description,
                metadata=metadata,
                event_id=f"{event_prefix}:points",
            )

        if quest.rewards.currency > 0:
            await self.currency.add_transaction(
                user_id,
                TransactionType.EARN,
                quest.rewards.currency,
                QUEST_COMPLETED_SOURCE,
                description,
                metadata=metadata,
                event_id=f"{event_prefix}:currency",
            )

        for badge_id in quest.rewards.badges:
            if await self.store.insert_user_badge(UserBadge(user_id=user_id, badge_id=badge_id)):
                logger.info(f"User {user_id} received badge {badge_id} from quest {quest.id}")
