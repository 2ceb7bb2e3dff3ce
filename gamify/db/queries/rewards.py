"""Reward catalog and redemption queries"""
import logging
from typing import Optional

from gamify.db.connection import db
from gamify.models import RedemptionStatus, Reward, RewardRedemption

logger = logging.getLogger(__name__)

_REWARD_COLUMNS = "id, name, description, type, cost, category, image, stock, active, created_at"
_REDEMPTION_COLUMNS = "id, user_id, reward_id, quantity, cost, status, redeemed_at, fulfilled_at"


async def save_reward(reward: Reward) -> Reward:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO rewards ({_REWARD_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    type = EXCLUDED.type,
                    cost = EXCLUDED.cost,
                    category = EXCLUDED.category,
                    image = EXCLUDED.image,
                    stock = EXCLUDED.stock,
                    active = EXCLUDED.active
                """,
                (
                    reward.id,
                    reward.name,
                    reward.description,
                    reward.type.value,
                    reward.cost,
                    reward.category,
                    reward.image,
                    reward.stock,
                    reward.active,
                    reward.created_at,
                )
            )
            await conn.commit()
            return reward


async def get_reward(reward_id: str) -> Optional[Reward]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_REWARD_COLUMNS} FROM rewards WHERE id = %s",
                (reward_id,)
            )
            row = await cur.fetchone()
            return Reward(**row) if row else None


async def list_rewards(
    category: Optional[str] = None,
    reward_type: Optional[str] = None,
    active: Optional[bool] = True
) -> list[Reward]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_REWARD_COLUMNS}
                FROM rewards
                WHERE (%s::text IS NULL OR category = %s)
                  AND (%s::text IS NULL OR type = %s)
                  AND (%s::boolean IS NULL OR active = %s)
                ORDER BY cost ASC, created_at DESC
                """,
                (category, category, reward_type, reward_type, active, active)
            )
            rows = await cur.fetchall()
            return [Reward(**row) for row in rows]


async def decrement_reward_stock(reward_id: str, quantity: int) -> bool:
    """Single conditional UPDATE; unlimited (NULL) stock always succeeds"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE rewards
                SET stock = CASE WHEN stock IS NULL THEN NULL ELSE stock - %s END
                WHERE id = %s AND (stock IS NULL OR stock >= %s)
                RETURNING id
                """,
                (quantity, reward_id, quantity)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def restock_reward(reward_id: str, quantity: int) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE rewards
                SET stock = stock + %s
                WHERE id = %s AND stock IS NOT NULL
                """,
                (quantity, reward_id)
            )
            await conn.commit()


async def save_redemption(redemption: RewardRedemption) -> RewardRedemption:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO reward_redemptions ({_REDEMPTION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET status = EXCLUDED.status,
                    fulfilled_at = EXCLUDED.fulfilled_at
                """,
                (
                    redemption.id,
                    redemption.user_id,
                    redemption.reward_id,
                    redemption.quantity,
                    redemption.cost,
                    redemption.status.value,
                    redemption.redeemed_at,
                    redemption.fulfilled_at,
                )
            )
            await conn.commit()
            return redemption


async def get_redemption(redemption_id: str) -> Optional[RewardRedemption]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_REDEMPTION_COLUMNS} FROM reward_redemptions WHERE id = %s",
                (redemption_id,)
            )
            row = await cur.fetchone()
            return RewardRedemption(**row) if row else None


async def list_redemptions(
    user_id: str,
    status: Optional[RedemptionStatus] = None,
    limit: int = 50
) -> list[RewardRedemption]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_REDEMPTION_COLUMNS}
                FROM reward_redemptions
                WHERE user_id = %s
                  AND (%s::text IS NULL OR status = %s)
                ORDER BY redeemed_at DESC
                LIMIT %s
                """,
                (
                    user_id,
                    status.value if status else None,
                    status.value if status else None,
                    limit,
                )
            )
            rows = await cur.fetchall()
            return [RewardRedemption(**row) for row in rows]
