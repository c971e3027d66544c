import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import require_admin, ActorContext
from core.errors import NotFound
from core.utils import register_action_log, resolve_timezone, format_local
from models import Dispute
from schemas.admin.finance import DisputeResolve
from services.bookings import resolve_dispute, booking_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/disputes",
    tags=["Admin Disputes"],
    dependencies=[Depends(require_admin)]
)


def dispute_to_dict(d: Dispute, local_tz=None) -> dict:
    return {
        "id": d.id,
        "booking_id": d.booking_id,
        "opened_by": d.opened_by,
        "reason": d.reason,
        "status": d.status,
        "resolution": d.resolution,
        "resolution_note": d.resolution_note,
        "refund_amount": float(d.refund_amount) if d.refund_amount is not None else None,
        "refund_tx_hash": d.refund_tx_hash,
        "created_at": format_local(d.created_at, local_tz),
        "resolved_at": format_local(d.resolved_at, local_tz),
    }


@router.get("/")
def list_disputes(status: str = "open", timezone_name: str = DEFAULT_TIMEZONE, db: Session = Depends(get_db)):
    local_tz = resolve_timezone(timezone_name)
    query = db.query(Dispute)
    if status:
        query = query.filter(Dispute.status == status)
    return [
        {**dispute_to_dict(d, local_tz), "booking": booking_to_dict(d.booking, local_tz)}
        for d in query.order_by(Dispute.created_at.asc(), Dispute.id.asc()).all()
    ]


@router.post("/{dispute_id}/resolve")
def resolve(
    dispute_id: int,
    data: DisputeResolve,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    try:
        dispute = db.query(Dispute).filter(Dispute.id == dispute_id).with_for_update().first()
        if not dispute:
            raise NotFound("Dispute not found", code="DISPUTE_NOT_FOUND")

        resolve_dispute(db, dispute, actor.user, data.resolution, data.note, data.refund_tx_hash)
        register_action_log(db, actor.user.id, "DISPUTE_RESOLVED", "POST", f"/admin/disputes/{dispute_id}/resolve",
                            data.model_dump(), request)
        db.commit()
        db.refresh(dispute)
        return {"status": "success", "dispute": dispute_to_dict(dispute), "booking_status": dispute.booking.status}

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Resolving dispute {dispute_id} failed: {e}")
        raise HTTPException(status_code=500, detail="error_resolving_dispute")
