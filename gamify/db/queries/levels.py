"""Level reference data and per-user last known level"""
import logging
from typing import Optional

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.models import Level

logger = logging.getLogger(__name__)


async def get_levels() -> list[Level]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT level, points_required, name, color, benefits
                FROM levels
                ORDER BY level ASC
                """
            )
            rows = await cur.fetchall()
            return [Level(**row) for row in rows]


async def save_level(level: Level) -> Level:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO levels (level, points_required, name, color, benefits)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (level) DO UPDATE
                SET points_required = EXCLUDED.points_required,
                    name = EXCLUDED.name,
                    color = EXCLUDED.color,
                    benefits = EXCLUDED.benefits
                """,
                (level.level, level.points_required, level.name, level.color, Jsonb(level.benefits))
            )
            await conn.commit()
            return level


async def swap_last_known_level(user_id: str, level: int) -> Optional[int]:
    """
    Store level as the user's last known level in one statement

    Returns:
        The previously stored level, or None on first write
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                WITH previous AS (
                    SELECT last_known_level
                    FROM user_levels
                    WHERE user_id = %s
                    FOR UPDATE
                )
                INSERT INTO user_levels (user_id, last_known_level)
                VALUES (%s, %s)
                ON CONFLICT (user_id) DO UPDATE
                SET last_known_level = EXCLUDED.last_known_level,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING (SELECT last_known_level FROM previous) AS previous_level
                """,
                (user_id, user_id, level)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row["previous_level"] if row else None
