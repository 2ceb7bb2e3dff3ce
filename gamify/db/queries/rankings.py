"""Leaderboard snapshot queries"""
import logging
from typing import Optional

from gamify.db.connection import db
from gamify.models import Ranking, RankingType

logger = logging.getLogger(__name__)

_RANKING_COLUMNS = "type, user_id, period_start, period_end, points, position, department, computed_at"


async def replace_rankings(ranking_type: RankingType, rankings: list[Ranking]) -> None:
    """Swap the whole snapshot for ranking_type in one transaction"""
    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM rankings WHERE type = %s",
                    (ranking_type.value,)
                )
                if rankings:
                    await cur.executemany(
                        f"""
                        INSERT INTO rankings ({_RANKING_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        """,
                        [
                            (
                                r.type.value,
                                r.user_id,
                                r.period_start,
                                r.period_end,
                                r.points,
                                r.position,
                                r.department,
                                r.computed_at,
                            )
                            for r in rankings
                        ]
                    )
    logger.info(f"Stored {len(rankings)} {ranking_type.value} rankings")


async def get_rankings(ranking_type: RankingType, limit: int = 100) -> list[Ranking]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_RANKING_COLUMNS}
                FROM rankings
                WHERE type = %s
                ORDER BY position ASC, user_id ASC
                LIMIT %s
                """,
                (ranking_type.value, limit)
            )
            rows = await cur.fetchall()
            return [Ranking(**row) for row in rows]


async def get_user_ranking(ranking_type: RankingType, user_id: str) -> Optional[Ranking]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_RANKING_COLUMNS} FROM rankings WHERE type = %s AND user_id = %s",
                (ranking_type.value, user_id)
            )
            row = await cur.fetchone()
            return Ranking(**row) if row else None
