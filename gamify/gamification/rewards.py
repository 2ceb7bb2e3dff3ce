"""
Reward shop

Catalog of rewards bought with currency, and the redemption lifecycle
pending -> fulfilled | cancelled. Cancelling refunds the cost and returns
limited stock.
"""

from typing import List, Optional, TYPE_CHECKING
import logging

from gamify.db.store import GamificationStore
from gamify.exceptions import (
    InsufficientBalanceError,
    OutOfStockError,
    RecordNotFoundError,
    RewardUnavailableError,
    ValidationError,
)
from gamify.models import (
    RedemptionStatus,
    Reward,
    RewardRedemption,
    RewardType,
    TransactionType,
)
from gamify.utils.datetime_helpers import now_utc

if TYPE_CHECKING:
    from gamify.gamification.currency_system import CurrencyLedger

logger = logging.getLogger(__name__)

REDEMPTION_SOURCE = "reward_redemption"
REFUND_SOURCE = "reward_refund"


class RewardShop:
    def __init__(self, store: GamificationStore, currency: "CurrencyLedger"):
        self.store = store
        self.currency = currency

    async def create_reward(self, reward: Reward) -> Reward:
        saved = await self.store.save_reward(reward)
        logger.info(f"Created reward '{saved.name}' (cost={saved.cost}, stock={saved.stock})")
        return saved

    async def list_rewards(
        self,
        category: Optional[str] = None,
        reward_type: Optional[RewardType] = None,
        active: Optional[bool] = True
    ) -> List[Reward]:
        """Rewards sorted by cost, cheapest first"""
        type_value = RewardType(reward_type).value if reward_type is not None else None
        return await self.store.list_rewards(category=category, reward_type=type_value, active=active)

    async def redeem_reward(self, user_id: str, reward_id: str, quantity: int = 1) -> RewardRedemption:
        """
        Buy quantity units of a reward

        Raises:
            ValidationError: quantity below 1
            RecordNotFoundError: unknown reward
            RewardUnavailableError: reward is inactive
            OutOfStockError: not enough stock
            InsufficientBalanceError: balance below cost * quantity
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity", value=quantity, user_id=user_id)

        reward = await self.store.get_reward(reward_id)
        if reward is None:
            raise RecordNotFoundError(
                f"Reward {reward_id} not found",
                record_type="reward",
                record_id=reward_id,
                user_id=user_id,
                operation="redeem_reward",
            )
        if not reward.active:
            raise RewardUnavailableError(reward_id, user_id=user_id, operation="redeem_reward")
        if reward.stock is not None and reward.stock < quantity:
            raise OutOfStockError(reward_id, reward.stock, quantity, user_id=user_id, operation="redeem_reward")

        total_cost = reward.cost * quantity
        balance = await self.currency.get_balance(user_id)
        if balance < total_cost:
            raise InsufficientBalanceError(balance, total_cost, user_id=user_id, operation="redeem_reward")

        if not await self.store.decrement_reward_stock(reward_id, quantity):
            current = await self.store.get_reward(reward_id)
            raise OutOfStockError(
                reward_id,
                current.stock if current and current.stock is not None else 0,
                quantity,
                user_id=user_id,
                operation="redeem_reward",
            )

        redemption = RewardRedemption(
            user_id=user_id,
            reward_id=reward_id,
            quantity=quantity,
            cost=total_cost,
        )

        try:
            await self.currency.spend(
                user_id,
                total_cost,
                REDEMPTION_SOURCE,
                f"Redeemed {quantity} x {reward.name}",
                metadata={"reward_id": reward_id, "redemption_id": redemption.id, "quantity": quantity},
                event_id=f"redemption:{redemption.id}",
            )
        except InsufficientBalanceError:
            # Balance dropped between the check and the spend
            await self.store.restock_reward(reward_id, quantity)
            raise

        saved = await self.store.save_redemption(redemption)
        logger.info(f"User {user_id} redeemed {quantity} x '{reward.name}' for {total_cost}")
        return saved

    async def get_redemptions(
        self,
        user_id: str,
        status: Optional[RedemptionStatus] = None,
        limit: int = 50
    ) -> List[RewardRedemption]:
        return await self.store.list_redemptions(user_id, status=status, limit=limit)

    async def _get_pending(self, redemption_id: str, operation: str) -> RewardRedemption:
        redemption = await self.store.get_redemption(redemption_id)
        if redemption is None:
            raise RecordNotFoundError(
                f"Redemption {redemption_id} not found",
                record_type="redemption",
                record_id=redemption_id,
                operation=operation,
            )
        if redemption.status != RedemptionStatus.PENDING:
            raise ValidationError(
                f"Redemption {redemption_id} is already {redemption.status.value}",
                field="status",
                value=redemption.status.value,
                user_id=redemption.user_id,
                operation=operation,
            )
        return redemption

    async def fulfill_redemption(self, redemption_id: str) -> RewardRedemption:
        redemption = await self._get_pending(redemption_id, "fulfill_redemption")
        redemption.status = RedemptionStatus.FULFILLED
        redemption.fulfilled_at = now_utc()
        saved = await self.store.save_redemption(redemption)
        logger.info(f"Redemption {redemption_id} fulfilled")
        return saved

    async def cancel_redemption(self, redemption_id: str) -> RewardRedemption:
        """Cancel a pending redemption, refund its cost and restock"""
        redemption = await self._get_pending(redemption_id, "cancel_redemption")

        await self.currency.add_transaction(
            redemption.user_id,
            TransactionType.EARN,
            redemption.cost,
            REFUND_SOURCE,
            f"Refund for cancelled redemption {redemption_id}",
            metadata={"reward_id": redemption.reward_id, "redemption_id": redemption_id},
            event_id=f"redemption:{redemption_id}:refund",
        )
        await self.store.restock_reward(redemption.reward_id, redemption.quantity)

        redemption.status = RedemptionStatus.CANCELLED
        saved = await self.store.save_redemption(redemption)
        logger.info(f"Redemption {redemption_id} cancelled and refunded {redemption.cost}")
        return saved
