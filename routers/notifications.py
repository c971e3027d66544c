from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.errors import NotFound
from core.utils import resolve_timezone, format_local
from models import Notification

router = APIRouter(dependencies=[Depends(verify_firebase_token)])


@router.get("/")
def get_notifications(
    unread_only: bool = False,
    limit: int = 30,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    query = db.query(Notification).filter(Notification.user_id == actor.user.id)
    if unread_only:
        query = query.filter(Notification.read == False)

    local_tz = resolve_timezone(timezone_name)
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(min(limit, 100)).all()
    return [
        {
            "id": n.id,
            "type": n.type,
            "title": n.title,
            "message": n.message,
            "read": n.read,
            "booking_id": n.booking_id,
            "payment_id": n.payment_id,
            "dispute_id": n.dispute_id,
            "created_at": format_local(n.created_at, local_tz),
        } for n in rows
    ]


@router.post("/{notification_id}/read")
def mark_as_read(notification_id: int, db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == actor.user.id
    ).first()
    if not notification:
        raise NotFound("Notification not found")

    notification.read = True
    db.commit()
    return {"status": "success"}


@router.post("/read-all")
def mark_all_as_read(db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    updated = db.query(Notification).filter(
        Notification.user_id == actor.user.id,
        Notification.read == False
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return {"status": "success", "updated": updated}
