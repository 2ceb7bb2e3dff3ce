"""Badge, badge progress and social badge queries"""
import logging
from typing import Optional
from datetime import datetime

from gamify.db.connection import db
from gamify.models import Badge, BadgeCriteria, BadgeProgress, SocialBadgeGrant, UserBadge

logger = logging.getLogger(__name__)

_BADGE_COLUMNS = "id, name, description, icon, rarity, category, criteria_id, social_badge"


# ==========================================
# Definitions
# ==========================================

async def save_badge(badge: Badge) -> Badge:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO badges ({_BADGE_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    icon = EXCLUDED.icon,
                    rarity = EXCLUDED.rarity,
                    category = EXCLUDED.category,
                    criteria_id = EXCLUDED.criteria_id,
                    social_badge = EXCLUDED.social_badge
                """,
                (
                    badge.id,
                    badge.name,
                    badge.description,
                    badge.icon,
                    badge.rarity.value,
                    badge.category,
                    badge.criteria_id,
                    badge.social_badge,
                )
            )
            await conn.commit()
            return badge


async def get_badge(badge_id: str) -> Optional[Badge]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_BADGE_COLUMNS} FROM badges WHERE id = %s",
                (badge_id,)
            )
            row = await cur.fetchone()
            return Badge(**row) if row else None


async def get_badges(social: Optional[bool] = None) -> list[Badge]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_BADGE_COLUMNS}
                FROM badges
                WHERE (%s::boolean IS NULL OR social_badge = %s)
                ORDER BY name
                """,
                (social, social)
            )
            rows = await cur.fetchall()
            return [Badge(**row) for row in rows]


async def save_badge_criteria(criteria: BadgeCriteria) -> BadgeCriteria:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO badge_criteria (id, badge_id, type, value, current_progress, description)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET badge_id = EXCLUDED.badge_id,
                    type = EXCLUDED.type,
                    value = EXCLUDED.value,
                    current_progress = EXCLUDED.current_progress,
                    description = EXCLUDED.description
                """,
                (
                    criteria.id,
                    criteria.badge_id,
                    criteria.type.value,
                    criteria.value,
                    criteria.current_progress,
                    criteria.description,
                )
            )
            await conn.commit()
            return criteria


async def get_badge_criteria(criteria_id: str) -> Optional[BadgeCriteria]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, badge_id, type, value, current_progress, description
                FROM badge_criteria
                WHERE id = %s
                """,
                (criteria_id,)
            )
            row = await cur.fetchone()
            return BadgeCriteria(**row) if row else None


# ==========================================
# Holdings
# ==========================================

async def user_has_badge(user_id: str, badge_id: str) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT 1 FROM user_badges WHERE user_id = %s AND badge_id = %s",
                (user_id, badge_id)
            )
            return await cur.fetchone() is not None


async def insert_user_badge(user_badge: UserBadge) -> bool:
    """Unique on (user_id, badge_id); only the inserting caller gets True"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_badges (id, user_id, badge_id, earned_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, badge_id) DO NOTHING
                RETURNING id
                """,
                (user_badge.id, user_badge.user_id, user_badge.badge_id, user_badge.earned_at)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def get_user_badges(user_id: str) -> list[UserBadge]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, user_id, badge_id, earned_at
                FROM user_badges
                WHERE user_id = %s
                ORDER BY earned_at DESC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [UserBadge(**row) for row in rows]


async def save_badge_progress(progress: BadgeProgress) -> BadgeProgress:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO badge_progress (user_id, badge_id, current, target, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id, badge_id) DO UPDATE
                SET current = EXCLUDED.current,
                    target = EXCLUDED.target,
                    updated_at = EXCLUDED.updated_at
                """,
                (progress.user_id, progress.badge_id, progress.current, progress.target, progress.updated_at)
            )
            await conn.commit()
            return progress


async def get_badge_progress(user_id: str) -> list[BadgeProgress]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, badge_id, current, target, updated_at
                FROM badge_progress
                WHERE user_id = %s
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [BadgeProgress(**row) for row in rows]


# ==========================================
# Social badges
# ==========================================

async def add_social_badge_grant(grant: SocialBadgeGrant) -> SocialBadgeGrant:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO social_badge_grants (id, from_user_id, to_user_id, badge_id, message, given_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    grant.id,
                    grant.from_user_id,
                    grant.to_user_id,
                    grant.badge_id,
                    grant.message,
                    grant.given_at,
                )
            )
            await conn.commit()
            return grant


async def count_social_badge_grants(to_user_id: str, badge_id: str, since: datetime) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM social_badge_grants
                WHERE to_user_id = %s AND badge_id = %s AND given_at >= %s
                """,
                (to_user_id, badge_id, since)
            )
            row = await cur.fetchone()
            return int(row["count"]) if row else 0
