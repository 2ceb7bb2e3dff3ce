"""Streak queries with optimistic versioning"""
import logging
from typing import Optional

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.exceptions import ConcurrencyError
from gamify.models import Streak

logger = logging.getLogger(__name__)

_STREAK_COLUMNS = "id, user_id, type, consecutive_days, longest_streak, last_activity, rewards_received, version"


async def get_streak(user_id: str, streak_type: str) -> Optional[Streak]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_STREAK_COLUMNS} FROM streaks WHERE user_id = %s AND type = %s",
                (user_id, streak_type)
            )
            row = await cur.fetchone()
            return Streak(**row) if row else None


async def get_user_streaks(user_id: str) -> list[Streak]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_STREAK_COLUMNS}
                FROM streaks
                WHERE user_id = %s
                ORDER BY consecutive_days DESC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [Streak(**row) for row in rows]


async def save_streak(streak: Streak) -> Streak:
    """
    Write streak if nobody else did since it was read

    A streak with version 0 is inserted; otherwise the row is updated only
    while its version still matches.

    Raises:
        ConcurrencyError: the stored version moved on
    """
    rewards = Jsonb([r.model_dump(mode="json") for r in streak.rewards_received])

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if streak.version == 0:
                await cur.execute(
                    f"""
                    INSERT INTO streaks ({_STREAK_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, 1)
                    ON CONFLICT (user_id, type) DO NOTHING
                    RETURNING {_STREAK_COLUMNS}
                    """,
                    (
                        streak.id,
                        streak.user_id,
                        streak.type,
                        streak.consecutive_days,
                        streak.longest_streak,
                        streak.last_activity,
                        rewards,
                    )
                )
            else:
                await cur.execute(
                    f"""
                    UPDATE streaks
                    SET consecutive_days = %s,
                        longest_streak = %s,
                        last_activity = %s,
                        rewards_received = %s,
                        version = version + 1
                    WHERE user_id = %s AND type = %s AND version = %s
                    RETURNING {_STREAK_COLUMNS}
                    """,
                    (
                        streak.consecutive_days,
                        streak.longest_streak,
                        streak.last_activity,
                        rewards,
                        streak.user_id,
                        streak.type,
                        streak.version,
                    )
                )
            row = await cur.fetchone()
            await conn.commit()

    if row is None:
        raise ConcurrencyError(
            f"Streak ({streak.user_id}, {streak.type}) changed since it was read",
            record_type="streak",
            record_id=streak.id,
            expected_version=streak.version,
        )
    return Streak(**row)
