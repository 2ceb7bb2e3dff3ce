"""Points ledger and points configuration queries"""
import logging
from typing import Optional, Tuple
from datetime import datetime

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.models import GamificationConfig, PointEntry

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = "id, user_id, amount, source, description, timestamp, audited, metadata, event_id"


# ==========================================
# Ledger
# ==========================================

async def add_point_entry(entry: PointEntry) -> Tuple[PointEntry, bool]:
    """
    Append a point entry (deduplicated on user_id + event_id)

    Returns:
        (stored entry, created)
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO point_entries ({_ENTRY_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, event_id) DO NOTHING
                RETURNING {_ENTRY_COLUMNS}
                """,
                (
                    entry.id,
                    entry.user_id,
                    entry.amount,
                    entry.source,
                    entry.description,
                    entry.timestamp,
                    entry.audited,
                    Jsonb(entry.metadata),
                    entry.event_id,
                )
            )
            row = await cur.fetchone()
            await conn.commit()

            if row:
                return PointEntry(**row), True

            await cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM point_entries
                WHERE user_id = %s AND event_id = %s
                """,
                (entry.user_id, entry.event_id)
            )
            existing = await cur.fetchone()
            logger.info(f"Duplicate point event {entry.event_id} for user {entry.user_id} ignored")
            return PointEntry(**existing), False


async def get_point_entries(user_id: str, limit: Optional[int] = None) -> list[PointEntry]:
    """Entries for user ordered by timestamp DESC"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM point_entries
                WHERE user_id = %s
                ORDER BY timestamp DESC
                LIMIT %s
                """,
                (user_id, limit)
            )
            rows = await cur.fetchall()
            return [PointEntry(**row) for row in rows]


async def sum_points(
    user_id: str,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None
) -> int:
    """Aggregate the full ledger for user (optionally within a time window)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM point_entries
                WHERE user_id = %s
                  AND (%s::timestamptz IS NULL OR timestamp >= %s)
                  AND (%s::timestamptz IS NULL OR timestamp <= %s)
                """,
                (user_id, since, since, until, until)
            )
            row = await cur.fetchone()
            return int(row["total"]) if row else 0


async def count_point_entries(user_id: str, source: str) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM point_entries
                WHERE user_id = %s AND source = %s
                """,
                (user_id, source)
            )
            row = await cur.fetchone()
            return int(row["count"]) if row else 0


async def sum_points_by_user(since: datetime, until: datetime) -> dict[str, int]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, SUM(amount) AS total
                FROM point_entries
                WHERE timestamp >= %s AND timestamp <= %s
                GROUP BY user_id
                """,
                (since, until)
            )
            rows = await cur.fetchall()
            return {row["user_id"]: int(row["total"]) for row in rows}


# ==========================================
# Configuration
# ==========================================

async def get_points_config(action: str, department: Optional[str]) -> Optional[GamificationConfig]:
    """Active config for exactly (department, action); NULL department is the global row"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, department, action, base_points, multipliers, active
                FROM gamification_configs
                WHERE action = %s
                  AND department IS NOT DISTINCT FROM %s
                  AND active = TRUE
                """,
                (action, department)
            )
            row = await cur.fetchone()
            return GamificationConfig(**row) if row else None


async def save_points_config(config: GamificationConfig) -> GamificationConfig:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO gamification_configs (id, department, action, base_points, multipliers, active)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (department, action) DO UPDATE
                SET base_points = EXCLUDED.base_points,
                    multipliers = EXCLUDED.multipliers,
                    active = EXCLUDED.active
                RETURNING id, department, action, base_points, multipliers, active
                """,
                (
                    config.id,
                    config.department,
                    config.action,
                    config.base_points,
                    Jsonb(config.multipliers),
                    config.active,
                )
            )
            row = await cur.fetchone()
            await conn.commit()
            return GamificationConfig(**row)
