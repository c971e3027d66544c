import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from core.errors import ValidationFailed
from models import Notification, User, UserRole

logger = logging.getLogger(__name__)

RECIPIENT_TYPES = ("all", "role", "specific")


def notify(
    db: Session,
    user_id: str,
    type: str,
    title: str,
    message: str,
    booking_id: int = None,
    payment_id: int = None,
    dispute_id: int = None,
) -> Notification:
    """Queues one notification row; the caller's commit delivers it."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        booking_id=booking_id,
        payment_id=payment_id,
        dispute_id=dispute_id,
    )
    db.add(notification)
    return notification


def notify_admins(db: Session, type: str, title: str, message: str, **refs) -> int:
    admin_ids = [row[0] for row in db.query(User.id).filter(User.role == UserRole.ADMIN.value).all()]
    for admin_id in admin_ids:
        notify(db, admin_id, type, title, message, **refs)
    return len(admin_ids)


def resolve_recipients(
    db: Session,
    recipient_type: str,
    role: Optional[str] = None,
    user_ids: Optional[Iterable[str]] = None,
) -> List[str]:
    if recipient_type not in RECIPIENT_TYPES:
        raise ValidationFailed(f"recipient_type must be one of: {', '.join(RECIPIENT_TYPES)}")

    query = db.query(User.id).filter(User.banned == False)

    if recipient_type == "role":
        if role not in [r.value for r in UserRole]:
            raise ValidationFailed("A valid role is required when recipient_type is 'role'")
        query = query.filter(User.role == role)
    elif recipient_type == "specific":
        ids = list(user_ids or [])
        if not ids:
            raise ValidationFailed("user_ids is required when recipient_type is 'specific'")
        query = query.filter(User.id.in_(ids))

    return [row[0] for row in query.all()]


def broadcast(
    db: Session,
    type: str,
    title: str,
    message: str,
    recipient_type: str = "all",
    role: Optional[str] = None,
    user_ids: Optional[Iterable[str]] = None,
) -> int:
    """Fans a message out as one notification per matching user. Returns how many were queued."""
    recipients = resolve_recipients(db, recipient_type, role, user_ids)

    db.add_all([
        Notification(user_id=uid, type=type, title=title, message=message, read=False)
        for uid in recipients
    ])
    logger.info(f"📣 Broadcast '{title}' queued for {len(recipients)} users ({recipient_type})")
    return len(recipients)
