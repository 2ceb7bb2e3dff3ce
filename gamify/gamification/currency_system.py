"""
Currency Ledger

Spendable balance fed by points conversion and rewards. The balance is
changed atomically by the store together with the capped list of recent
transactions on the account and the unbounded transaction ledger, so the
balance always equals the signed sum of every transaction ever recorded.

A spend larger than the balance is recorded for the amount actually
debited (the asked-for amount goes to metadata["requested"]); callers that
need "insufficient funds" semantics use spend(), which checks first.
"""

from typing import Any, Dict, List, Optional, Union
import logging

from gamify import config
from gamify.db.store import GamificationStore
from gamify.exceptions import InsufficientBalanceError, InsufficientPointsError, ValidationError
from gamify.models import (
    ConversionResult,
    CurrencyAccount,
    CurrencyTransaction,
    TransactionResult,
    TransactionType,
)
from gamify.monitoring import track_currency_transaction
from gamify.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

POINTS_CONVERSION_SOURCE = "points_conversion"


class CurrencyLedger:
    def __init__(self, store: GamificationStore, history_cap: Optional[int] = None):
        self.store = store
        self.history_cap = history_cap if history_cap is not None else config.CURRENCY_HISTORY_CAP
        self._locks = KeyedLock("currency")

    async def add_transaction(
        self,
        user_id: str,
        transaction_type: Union[TransactionType, str],
        amount: int,
        source: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None
    ) -> TransactionResult:
        """
        Record one earn or spend

        Args:
            user_id: Account owner (the account is created on first use)
            transaction_type: "earn" or "spend"
            amount: Non-negative amount
            source: Tag such as "points_conversion" or "reward_redemption"
            description: Human readable reason
            metadata: Free-form context
            event_id: Idempotency key; a repeated (user_id, event_id) is not reapplied

        Raises:
            ValidationError: negative amount
        """
        if amount < 0:
            raise ValidationError(
                "Transaction amount cannot be negative",
                field="amount",
                value=amount,
                user_id=user_id,
                operation="add_transaction",
            )

        transaction = CurrencyTransaction(
            user_id=user_id,
            type=TransactionType(transaction_type),
            amount=amount,
            source=source,
            description=description,
            metadata=metadata or {},
            event_id=event_id,
        )

        account, stored, duplicate = await self.store.apply_currency_transaction(transaction, self.history_cap)

        if duplicate:
            logger.info(f"Currency event {event_id} for user {user_id} already applied, skipping")
        else:
            track_currency_transaction(stored.type.value)
            logger.info(
                f"Currency {stored.type.value} of {stored.amount} for user {user_id} "
                f"(source={source}), balance now {account.balance}"
            )

        return TransactionResult(
            account=account,
            transaction=stored,
            new_balance=account.balance,
            duplicate=duplicate,
        )

    async def get_account(self, user_id: str) -> CurrencyAccount:
        account = await self.store.get_currency_account(user_id)
        return account if account is not None else CurrencyAccount(user_id=user_id)

    async def get_balance(self, user_id: str) -> int:
        account = await self.store.get_currency_account(user_id)
        return account.balance if account is not None else 0

    async def get_transaction_history(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0
    ) -> List[CurrencyTransaction]:
        """Page through the full transaction ledger, newest first"""
        return await self.store.get_currency_transactions(user_id, limit=limit, offset=offset)

    async def count_transactions(self, user_id: str) -> int:
        return await self.store.count_currency_transactions(user_id)

    async def has_sufficient_balance(self, user_id: str, amount: int) -> bool:
        return await self.get_balance(user_id) >= amount

    async def spend(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None
    ) -> TransactionResult:
        """
        Spend currency after checking the balance

        Raises:
            InsufficientBalanceError: balance lower than amount
        """
        async with self._locks.hold(user_id):
            balance = await self.get_balance(user_id)
            if balance < amount:
                raise InsufficientBalanceError(balance, amount, user_id=user_id, operation="spend")
            return await self.add_transaction(
                user_id,
                TransactionType.SPEND,
                amount,
                source,
                description,
                metadata=metadata,
                event_id=event_id,
            )

    async def convert_points_to_currency(
        self,
        user_id: str,
        points: int,
        rate: Optional[int] = None
    ) -> ConversionResult:
        """
        Turn points into currency at floor(points / rate)

        Points are not debited: the points total is a permanent score and
        the same points can be converted again.

        Raises:
            InsufficientPointsError: conversion would yield no currency
        """
        if rate is None:
            rate = config.POINTS_TO_CURRENCY_RATE
        if rate <= 0:
            raise ValidationError(
                "Conversion rate must be positive",
                field="rate",
                value=rate,
                user_id=user_id,
                operation="convert_points_to_currency",
            )

        currency_earned = points // rate
        if currency_earned <= 0:
            raise InsufficientPointsError(points, rate, user_id=user_id, operation="convert_points_to_currency")

        result = await self.add_transaction(
            user_id,
            TransactionType.EARN,
            currency_earned,
            POINTS_CONVERSION_SOURCE,
            f"Converted {points} points to {currency_earned} coins",
            metadata={"points": points, "rate": rate},
        )
        return ConversionResult(account=result.account, currency_earned=currency_earned)
