import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import verify_admin_key
from services.bookings import auto_accept_deliveries, release_accepted_bookings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/system",
    tags=["System"],
    dependencies=[Depends(verify_admin_key)]
)


@router.post("/escrow/auto-accept")
def run_auto_accept(db: Session = Depends(get_db)):
    """
    Accepts deliveries nobody reviewed in time, then releases the escrow of
    every accepted booking.

    Meant to be hit by an external scheduler (cron / n8n) with the X-Admin-Key header.
    """
    try:
        accepted = auto_accept_deliveries(db)
        released = release_accepted_bookings(db)
        db.commit()
        return {
            "status": "success",
            "accepted_count": len(accepted),
            "booking_ids": accepted,
            "released_count": len(released),
            "released_ids": released,
        }
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Auto-accept sweep failed: {e}")
        raise HTTPException(status_code=500, detail="error_auto_accept")
