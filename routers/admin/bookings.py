import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import require_admin, ActorContext
from core.utils import register_action_log, resolve_timezone
from models import Booking
from schemas.admin.finance import BookingRefund
from services.bookings import booking_to_dict, get_booking_or_404, release_booking, refund_booking

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/bookings",
    tags=["Admin Bookings"],
    dependencies=[Depends(require_admin)]
)


@router.get("/")
def list_bookings(
    status: str = None,
    limit: int = 100,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db)
):
    query = db.query(Booking)
    if status:
        query = query.filter(Booking.status == status)

    local_tz = resolve_timezone(timezone_name)
    bookings = query.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(min(limit, 500)).all()
    return [booking_to_dict(b, local_tz) for b in bookings]


@router.post("/{booking_id}/release")
def release(
    booking_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    try:
        booking = get_booking_or_404(db, booking_id, lock=True)
        release_booking(db, booking, actor.user)
        register_action_log(db, actor.user.id, "ESCROW_RELEASED", "POST", f"/admin/bookings/{booking_id}/release",
                            {"booking_id": booking_id}, request)
        db.commit()
        db.refresh(booking)
        return {"status": "success", "booking": booking_to_dict(booking)}

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Releasing booking {booking_id} failed: {e}")
        raise HTTPException(status_code=500, detail="error_releasing_booking")


@router.post("/{booking_id}/refund")
def refund(
    booking_id: int,
    data: BookingRefund,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    try:
        booking = get_booking_or_404(db, booking_id, lock=True)
        refund_booking(db, booking, actor.user, data.refund_tx_hash)
        register_action_log(db, actor.user.id, "BOOKING_REFUNDED", "POST", f"/admin/bookings/{booking_id}/refund",
                            data.model_dump(), request)
        db.commit()
        db.refresh(booking)
        return {"status": "success", "booking": booking_to_dict(booking)}

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Refunding booking {booking_id} failed: {e}")
        raise HTTPException(status_code=500, detail="error_refunding_booking")
