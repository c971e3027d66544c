import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import require_admin, ActorContext
from core.utils import register_action_log
from schemas.admin.notification import BroadcastNotification
from services.notifications import broadcast

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/notifications",
    tags=["Admin Notifications"],
    dependencies=[Depends(require_admin)]
)


@router.post("/broadcast")
def send_mass_notification(
    data: BroadcastNotification,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    try:
        count = broadcast(
            db,
            type=data.type,
            title=data.title,
            message=data.message,
            recipient_type=data.recipient_type,
            role=data.role,
            user_ids=data.user_ids,
        )
        register_action_log(db, actor.user.id, "MASS_NOTIFICATION_SENT", "POST", "/admin/notifications/broadcast",
                            {"title": data.title, "recipient_type": data.recipient_type, "count": count}, request)
        db.commit()
        return {"status": "success", "message": f"Notification sent to {count} users", "count": count}

    except HTTPException as he:
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Broadcast failed: {e}")
        raise HTTPException(status_code=500, detail="INTERNAL_SERVER_ERROR")
