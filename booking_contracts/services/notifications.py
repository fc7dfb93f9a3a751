"""Notification Sink — posts human-readable contract updates to the booking's conversation.

The messaging store is owned by another part of the platform; this module
only depends on its call contract: ``post(db, booking_id, body, context)``.
The default adapter writes system messages into the ``conversations`` /
``conversation_messages`` tables, creating the booking's contract
conversation on first use.
"""
import logging
from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session

from booking_contracts.models.conversation import Conversation, ConversationMessage
from booking_contracts.services.clock import utcnow

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def post(self, db: Session, booking_id: str, body: str, context: dict[str, Any]) -> None:
        ...


class ConversationNotificationSink:
    """Appends a system message to the booking's ``contract`` conversation."""

    conversation_type = "contract"

    def _get_or_create_conversation(self, db: Session, booking_id: str) -> Conversation:
        convo = (
            db.query(Conversation)
            .filter(
                Conversation.booking_id == booking_id,
                Conversation.conversation_type == self.conversation_type,
            )
            .first()
        )
        if convo:
            return convo
        convo = Conversation(
            booking_id=booking_id,
            conversation_type=self.conversation_type,
            subject=f"Contract: Booking #{booking_id}",
        )
        db.add(convo)
        db.flush()
        return convo

    def post(self, db: Session, booking_id: str, body: str, context: dict[str, Any]) -> None:
        now = utcnow()
        convo = self._get_or_create_conversation(db, booking_id)
        db.add(ConversationMessage(
            conversation_id=convo.conversation_id,
            sender_id=None,
            body=body,
            message_type="system",
            payload={"source": "contract_workflow", **context},
            created_at=now,
        ))
        convo.last_message_at = now
        db.commit()


_sink: NotificationSink = ConversationNotificationSink()


def get_sink() -> NotificationSink:
    return _sink


def set_sink(sink: Optional[NotificationSink]) -> None:
    """Swap the active sink; ``None`` restores the conversation-backed default."""
    global _sink
    _sink = sink or ConversationNotificationSink()
