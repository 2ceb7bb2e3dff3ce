"""Peer recognition queries"""
import logging
from typing import Optional

from gamify.db.connection import db
from gamify.models import PeerRecognition

logger = logging.getLogger(__name__)

_RECOGNITION_COLUMNS = "id, from_user_id, to_user_id, type, message, points, public, created_at"


async def add_recognition(recognition: PeerRecognition) -> PeerRecognition:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO peer_recognitions ({_RECOGNITION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    recognition.id,
                    recognition.from_user_id,
                    recognition.to_user_id,
                    recognition.type.value,
                    recognition.message,
                    recognition.points,
                    recognition.public,
                    recognition.created_at,
                )
            )
            await conn.commit()
            return recognition


async def list_recognitions(
    public: Optional[bool] = None,
    to_user_id: Optional[str] = None,
    from_user_id: Optional[str] = None,
    limit: int = 50
) -> list[PeerRecognition]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_RECOGNITION_COLUMNS}
                FROM peer_recognitions
                WHERE (%s::boolean IS NULL OR public = %s)
                  AND (%s::text IS NULL OR to_user_id = %s)
                  AND (%s::text IS NULL OR from_user_id = %s)
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (public, public, to_user_id, to_user_id, from_user_id, from_user_id, limit)
            )
            rows = await cur.fetchall()
            return [PeerRecognition(**row) for row in rows]
