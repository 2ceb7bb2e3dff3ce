"""Quest and quest progress queries"""
import logging
from typing import Optional

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.exceptions import ConcurrencyError
from gamify.models import Quest, QuestProgress, QuestProgressStatus, QuestStatus

logger = logging.getLogger(__name__)

_QUEST_COLUMNS = (
    "id, title, description, narrative, objectives, rewards, status, "
    "created_by, related_challenge_id, prerequisites, created_at"
)
_QUEST_PROGRESS_COLUMNS = "quest_id, user_id, progress, status, started_at, completed_at, version"


async def save_quest(quest: Quest) -> Quest:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO quests ({_QUEST_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET title = EXCLUDED.title,
                    description = EXCLUDED.description,
                    narrative = EXCLUDED.narrative,
                    objectives = EXCLUDED.objectives,
                    rewards = EXCLUDED.rewards,
                    status = EXCLUDED.status,
                    related_challenge_id = EXCLUDED.related_challenge_id,
                    prerequisites = EXCLUDED.prerequisites
                """,
                (
                    quest.id,
                    quest.title,
                    quest.description,
                    quest.narrative,
                    Jsonb([o.model_dump(mode="json") for o in quest.objectives]),
                    Jsonb(quest.rewards.model_dump(mode="json")),
                    quest.status.value,
                    quest.created_by,
                    quest.related_challenge_id,
                    Jsonb(quest.prerequisites),
                    quest.created_at,
                )
            )
            await conn.commit()
            return quest


async def get_quest(quest_id: str) -> Optional[Quest]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_QUEST_COLUMNS} FROM quests WHERE id = %s",
                (quest_id,)
            )
            row = await cur.fetchone()
            return Quest(**row) if row else None


async def list_quests(status: Optional[QuestStatus] = None) -> list[Quest]:
    status_value = status.value if status is not None else None
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_QUEST_COLUMNS}
                FROM quests
                WHERE (%s::text IS NULL OR status = %s)
                ORDER BY created_at DESC
                """,
                (status_value, status_value)
            )
            rows = await cur.fetchall()
            return [Quest(**row) for row in rows]


async def get_quest_progress(quest_id: str, user_id: str) -> Optional[QuestProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_QUEST_PROGRESS_COLUMNS}
                FROM quest_progress
                WHERE quest_id = %s AND user_id = %s
                """,
                (quest_id, user_id)
            )
            row = await cur.fetchone()
            return QuestProgress(**row) if row else None


async def list_quest_progress(user_id: str, status: Optional[QuestProgressStatus] = None) -> list[QuestProgress]:
    status_value = status.value if status is not None else None
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_QUEST_PROGRESS_COLUMNS}
                FROM quest_progress
                WHERE user_id = %s
                  AND (%s::text IS NULL OR status = %s)
                ORDER BY started_at DESC
                """,
                (user_id, status_value, status_value)
            )
            rows = await cur.fetchall()
            return [QuestProgress(**row) for row in rows]


async def save_quest_progress(progress: QuestProgress) -> QuestProgress:
    """Insert (version 0) or compare-and-swap update on version"""
    values = (
        Jsonb([p.model_dump(mode="json") for p in progress.progress]),
        progress.status.value,
        progress.completed_at,
    )

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if progress.version == 0:
                await cur.execute(
                    f"""
                    INSERT INTO quest_progress (quest_id, user_id, progress, status, completed_at,
                                                started_at, version)
                    VALUES (%s, %s, %s, %s, %s, %s, 1)
                    ON CONFLICT (quest_id, user_id) DO NOTHING
                    RETURNING {_QUEST_PROGRESS_COLUMNS}
                    """,
                    (progress.quest_id, progress.user_id, *values, progress.started_at)
                )
            else:
                await cur.execute(
                    f"""
                    UPDATE quest_progress
                    SET progress = %s,
                        status = %s,
                        completed_at = %s,
                        version = version + 1
                    WHERE quest_id = %s AND user_id = %s AND version = %s
                    RETURNING {_QUEST_PROGRESS_COLUMNS}
                    """,
                    (*values, progress.quest_id, progress.user_id, progress.version)
                )
            row = await cur.fetchone()
            await conn.commit()

    if row is None:
        raise ConcurrencyError(
            f"quest_progress ({progress.quest_id}, {progress.user_id}) changed since it was read",
            record_type="quest_progress",
            record_id=f"{progress.quest_id}:{progress.user_id}",
            expected_version=progress.version,
        )
    return QuestProgress(**row)
