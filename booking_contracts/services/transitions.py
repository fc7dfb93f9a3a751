"""Transition events — the single side-effect seam of the contract workflow.

Workflow services commit a state change and then call ``publish`` with one
``TransitionApplied`` event. Subscribers run in registration order: the
audit-log writer first, then the notification poster. Notification delivery
is best effort; a failure is logged and never undoes the committed
transition.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from booking_contracts.models.audit_log import AuditLog
from booking_contracts.services import notifications
from booking_contracts.services.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionApplied:
    contract_id: str
    booking_id: str
    action: str
    message: str
    actor_user_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Session, TransitionApplied], None]


def record_audit_log(db: Session, transition: TransitionApplied) -> None:
    db.add(AuditLog(
        who=transition.actor_user_id,
        action=transition.action,
        entity_type="contract",
        entity_id=transition.contract_id,
        context={"booking_id": transition.booking_id, **transition.context},
        occurred_at=utcnow(),
    ))
    db.commit()


def post_notification(db: Session, transition: TransitionApplied) -> None:
    try:
        notifications.get_sink().post(
            db,
            transition.booking_id,
            transition.message,
            {"action": transition.action, "contract_id": transition.contract_id},
        )
    except Exception:
        db.rollback()
        logger.exception(
            "Failed to post contract notification for booking %s (%s)",
            transition.booking_id, transition.action,
        )


SUBSCRIBERS: list[Subscriber] = [record_audit_log, post_notification]


def publish(db: Session, transition: TransitionApplied) -> None:
    """Fan a committed transition out to every subscriber."""
    logger.info(
        "Contract %s: %s (actor=%s)",
        transition.contract_id, transition.action, transition.actor_user_id or "system",
    )
    for subscriber in SUBSCRIBERS:
        subscriber(db, transition)
