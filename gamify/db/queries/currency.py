"""Currency account and transaction ledger queries"""
import logging
from typing import Optional, Tuple

from psycopg.types.json import Jsonb

from gamify.db.connection import db
from gamify.models import CurrencyAccount, CurrencyTransaction

logger = logging.getLogger(__name__)

_TXN_COLUMNS = "id, user_id, type, amount, source, description, timestamp, metadata, event_id"


async def get_currency_account(user_id: str) -> Optional[CurrencyAccount]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, balance, transactions, updated_at
                FROM currency_accounts
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return CurrencyAccount(**row) if row else None


async def apply_currency_transaction(
    transaction: CurrencyTransaction,
    history_cap: int
) -> Tuple[CurrencyAccount, CurrencyTransaction, bool]:
    """
    Apply one transaction under a row lock on the account

    The account row is locked first so the event_id duplicate check, the
    balance change and both history writes are serialized per user.
    """
    user_id = transaction.user_id

    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO currency_accounts (user_id)
                    VALUES (%s)
                    ON CONFLICT (user_id) DO NOTHING
                    """,
                    (user_id,)
                )
                await cur.execute(
                    """
                    SELECT user_id, balance, transactions, updated_at
                    FROM currency_accounts
                    WHERE user_id = %s
                    FOR UPDATE
                    """,
                    (user_id,)
                )
                account = CurrencyAccount(**await cur.fetchone())

                if transaction.event_id is not None:
                    await cur.execute(
                        f"""
                        SELECT {_TXN_COLUMNS}
                        FROM currency_transactions
                        WHERE user_id = %s AND event_id = %s
                        """,
                        (user_id, transaction.event_id)
                    )
                    original = await cur.fetchone()
                    if original:
                        logger.info(f"Duplicate currency event {transaction.event_id} for user {user_id} ignored")
                        return account, CurrencyTransaction(**original), True

                transaction = transaction.capped_to_balance(account.balance)
                new_balance = account.balance + transaction.signed_amount

                history = [t.model_dump(mode="json") for t in account.transactions]
                history.append(transaction.model_dump(mode="json"))
                history = history[-history_cap:]

                await cur.execute(
                    f"""
                    INSERT INTO currency_transactions ({_TXN_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        transaction.id,
                        user_id,
                        transaction.type.value,
                        transaction.amount,
                        transaction.source,
                        transaction.description,
                        transaction.timestamp,
                        Jsonb(transaction.metadata),
                        transaction.event_id,
                    )
                )
                await cur.execute(
                    """
                    UPDATE currency_accounts
                    SET balance = %s,
                        transactions = %s,
                        updated_at = %s
                    WHERE user_id = %s
                    RETURNING user_id, balance, transactions, updated_at
                    """,
                    (new_balance, Jsonb(history), transaction.timestamp, user_id)
                )
                updated = await cur.fetchone()

    return CurrencyAccount(**updated), transaction, False


async def get_currency_transactions(user_id: str, limit: int = 50, offset: int = 0) -> list[CurrencyTransaction]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_TXN_COLUMNS}
                FROM currency_transactions
                WHERE user_id = %s
                ORDER BY timestamp DESC
                LIMIT %s OFFSET %s
                """,
                (user_id, limit, offset)
            )
            rows = await cur.fetchall()
            return [CurrencyTransaction(**row) for row in rows]


async def count_currency_transactions(user_id: str) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT COUNT(*) AS count FROM currency_transactions WHERE user_id = %s",
                (user_id,)
            )
            row = await cur.fetchone()
            return int(row["count"]) if row else 0
