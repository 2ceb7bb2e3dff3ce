"""
Peer recognition

Kudos, thanks and appreciation messages between users. A recognition may
carry points for the recipient; public recognitions make up the feed.
"""

from typing import List, Optional, Union, TYPE_CHECKING
import logging

from gamify.db.store import GamificationStore
from gamify.exceptions import ValidationError
from gamify.models import PeerRecognition, RecognitionType
from gamify.monitoring import track_recognition_sent

if TYPE_CHECKING:
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)

PEER_RECOGNITION_SOURCE = "peer_recognition"
MAX_MESSAGE_LENGTH = 500


class PeerRecognitions:
    def __init__(self, store: GamificationStore, ledger: "PointsLedger"):
        self.store = store
        self.ledger = ledger

    async def send_recognition(
        self,
        from_user_id: str,
        to_user_id: str,
        recognition_type: Union[RecognitionType, str],
        message: str,
        points: Optional[int] = None,
        public: bool = True
    ) -> PeerRecognition:
        """
        Record a recognition and award its points to the recipient

        Raises:
            ValidationError: self-recognition, empty or overlong message,
                negative points
        """
        if from_user_id == to_user_id:
            raise ValidationError(
                "Cannot recognize yourself",
                field="to_user_id",
                value=to_user_id,
                user_id=from_user_id,
                operation="send_recognition",
            )
        if not message or len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message must be 1 to {MAX_MESSAGE_LENGTH} characters",
                field="message",
                user_id=from_user_id,
                operation="send_recognition",
            )
        if points is not None and points < 0:
            raise ValidationError(
                "Recognition points cannot be negative",
                field="points",
                value=points,
                user_id=from_user_id,
                operation="send_recognition",
            )

        recognition = await self.store.add_recognition(PeerRecognition(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            type=RecognitionType(recognition_type),
            message=message,
            points=points,
            public=public,
        ))

        if points:
            await self.ledger.award(
                to_user_id,
                points,
                PEER_RECOGNITION_SOURCE,
                f"Recognition ({recognition.type.value}): {message}",
                metadata={
                    "recognition_id": recognition.id,
                    "from_user_id": from_user_id,
                    "type": recognition.type.value,
                },
                event_id=f"recognition:{recognition.id}",
            )

        track_recognition_sent(recognition.type.value)
        logger.info(
            f"User {from_user_id} sent {recognition.type.value} to {to_user_id} "
            f"({points or 0} points)"
        )
        return recognition

    async def get_recognition_feed(self, limit: int = 50) -> List[PeerRecognition]:
        """Public recognitions, newest first"""
        return await self.store.list_recognitions(public=True, limit=limit)

    async def get_received(self, user_id: str, limit: int = 50) -> List[PeerRecognition]:
        return await self.store.list_recognitions(to_user_id=user_id, limit=limit)

    async def get_sent(self, user_id: str, limit: int = 50) -> List[PeerRecognition]:
        return await self.store.list_recognitions(from_user_id=user_id, limit=limit)
