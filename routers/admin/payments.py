import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import require_admin, ActorContext
from core.utils import register_action_log, resolve_timezone
from models import Payment
from schemas.admin.finance import PaymentReject, PayoutRecord
from services.payments import (
    verify_payment, reject_payment, record_payout, payment_to_dict, get_payment_or_404
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/payments",
    tags=["Admin Payments"],
    dependencies=[Depends(require_admin)]
)


@router.get("/")
def list_payments(
    status: str = None,
    network: str = None,
    limit: int = 100,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db)
):
    query = db.query(Payment)
    if status:
        query = query.filter(Payment.status == status)
    if network:
        query = query.filter(Payment.network == network.lower())

    local_tz = resolve_timezone(timezone_name)
    payments = query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(min(limit, 500)).all()
    return [payment_to_dict(p, local_tz) for p in payments]


def _review(db: Session, request: Request, admin_id: str, payment_id: int, action_name: str, action):
    try:
        payment = get_payment_or_404(db, payment_id, lock=True)
        action(payment)
        register_action_log(
            db, admin_id, action_name, request.method, request.url.path,
            {"payment_id": payment_id, "tx_hash": payment.tx_hash}, request
        )
        db.commit()
        db.refresh(payment)
        return {"status": "success", "payment": payment_to_dict(payment)}

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 {action_name} failed for payment {payment_id}: {e}")
        raise HTTPException(status_code=500, detail="error_reviewing_payment")


@router.post("/{payment_id}/verify")
def verify(payment_id: int, request: Request, db: Session = Depends(get_db), actor: ActorContext = Depends(require_admin)):
    return _review(db, request, actor.user.id, payment_id, "PAYMENT_VERIFIED", lambda p: verify_payment(db, p, actor.user))


@router.post("/{payment_id}/reject")
def reject(
    payment_id: int,
    data: PaymentReject,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    return _review(db, request, actor.user.id, payment_id, "PAYMENT_REJECTED", lambda p: reject_payment(db, p, actor.user, data.reason))


@router.post("/{payment_id}/payout")
def payout(
    payment_id: int,
    data: PayoutRecord,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    return _review(db, request, actor.user.id, payment_id, "PAYOUT_RECORDED", lambda p: record_payout(db, p, actor.user, data.payout_tx_hash))
