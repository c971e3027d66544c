import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import require_admin, ActorContext
from core.errors import NotFound, InvalidTransition, ValidationFailed
from core.utils import register_action_log, resolve_timezone, format_local, utcnow
from models import User, ReferralCreditAward, ReferralCashout, CashoutStatus
from schemas.admin.finance import CreditAdjust, CashoutComplete
from services.chains import validate_transaction_hash, explorer_url
from services.notifications import notify
from services.referrals import adjust_credits

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/referrals",
    tags=["Admin Referrals"],
    dependencies=[Depends(require_admin)]
)


@router.get("/stats")
def referral_stats(db: Session = Depends(get_db)):
    referred_users = db.query(User).filter(User.referred_by.isnot(None)).count()
    awards_count, awarded_total = db.query(
        func.count(ReferralCreditAward.id),
        func.coalesce(func.sum(ReferralCreditAward.credit_amount), 0)
    ).one()
    outstanding = db.query(func.coalesce(func.sum(User.referral_credits), 0)).scalar()
    pending_cashouts = db.query(ReferralCashout).filter(ReferralCashout.status == CashoutStatus.PENDING.value).count()

    top = db.query(User).filter(User.lifetime_referral_credits > 0).order_by(
        User.lifetime_referral_credits.desc()
    ).limit(10).all()

    return {
        "referred_users": referred_users,
        "credits_awarded": awards_count,
        "credits_awarded_total": float(awarded_total),
        "outstanding_credits": float(outstanding),
        "pending_cashouts": pending_cashouts,
        "top_referrers": [
            {"id": u.id, "handle": u.handle, "lifetime_credits": float(u.lifetime_referral_credits)}
            for u in top
        ],
    }


@router.post("/users/{user_id}/adjust")
def adjust_user_credits(
    user_id: str,
    data: CreditAdjust,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    user = db.query(User).filter(User.id == user_id).with_for_update().first()
    if not user:
        raise NotFound("User not found", code="USER_NOT_FOUND")

    previous = user.referral_credits or 0
    new_balance = adjust_credits(db, user, data.amount)
    register_action_log(db, actor.user.id, "REFERRAL_CREDITS_ADJUSTED", "POST", f"/admin/referrals/users/{user_id}/adjust",
                        {"amount": str(data.amount), "reason": data.reason,
                         "previous": str(previous), "new_balance": str(new_balance)}, request)
    db.commit()
    return {"status": "success", "user_id": user.id, "referral_credits": float(new_balance)}


@router.get("/cashouts")
def list_cashouts(status: str = None, timezone_name: str = DEFAULT_TIMEZONE, db: Session = Depends(get_db)):
    query = db.query(ReferralCashout)
    if status:
        query = query.filter(ReferralCashout.status == status)

    local_tz = resolve_timezone(timezone_name)
    return [
        {
            "id": c.id,
            "user_id": c.user_id,
            "handle": c.user.handle if c.user else None,
            "amount": float(c.credit_amount),
            "currency": c.selected_currency,
            "network": c.selected_network,
            "payout_address": c.payout_address,
            "status": c.status,
            "tx_hash": c.tx_hash,
            "requested_at": format_local(c.requested_at, local_tz),
        } for c in query.order_by(ReferralCashout.requested_at.asc(), ReferralCashout.id.asc()).all()
    ]


@router.post("/cashouts/{cashout_id}/complete")
def complete_cashout(
    cashout_id: int,
    data: CashoutComplete,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    try:
        cashout = db.query(ReferralCashout).filter(ReferralCashout.id == cashout_id).with_for_update().first()
        if not cashout:
            raise NotFound("Cash out not found", code="CASHOUT_NOT_FOUND")
        if cashout.status != CashoutStatus.PENDING.value:
            raise InvalidTransition(f"Cash out is already {cashout.status}.")

        tx_hash = data.tx_hash.strip()
        if not validate_transaction_hash(tx_hash, cashout.selected_network):
            raise ValidationFailed(f"Invalid transaction hash format for {cashout.selected_network}", code="INVALID_TX_HASH")

        cashout.status = CashoutStatus.COMPLETED.value
        cashout.tx_hash = tx_hash
        cashout.processed_at = utcnow()
        cashout.processed_by = actor.user.id

        notify(db, cashout.user_id, "cashout_completed", "Cash out sent",
               f"{cashout.credit_amount} {cashout.selected_currency} was sent to your wallet.")
        register_action_log(db, actor.user.id, "REFERRAL_CASHOUT_COMPLETED", "POST",
                            f"/admin/referrals/cashouts/{cashout_id}/complete", {"tx_hash": tx_hash}, request)
        db.commit()

        return {
            "status": "success",
            "cashout_id": cashout.id,
            "explorer_url": explorer_url(cashout.selected_network, tx_hash),
        }
    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Completing cash out {cashout_id} failed: {e}")
        raise HTTPException(status_code=500, detail="error_completing_cashout")
