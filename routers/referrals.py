import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE, MIN_CASHOUT_AMOUNT, REFERRAL_CREDIT_AMOUNT
from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.utils import register_action_log, resolve_timezone, format_local
from models import User, ReferralCreditAward, ReferralCashout
from schemas.financials import CashoutRequest
from schemas.users import ReferralApply
from services.notifications import notify_admins
from services.referrals import apply_referral_code, request_cashout

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_firebase_token)])


@router.get("/dashboard")
def get_referral_dashboard(
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    user = actor.user
    local_tz = resolve_timezone(timezone_name)

    referred_count = db.query(User).filter(User.referred_by == user.id).count()

    awards = db.query(ReferralCreditAward).filter(
        ReferralCreditAward.referrer_id == user.id
    ).order_by(ReferralCreditAward.awarded_at.desc()).all()

    cashouts = db.query(ReferralCashout).filter(
        ReferralCashout.user_id == user.id
    ).order_by(ReferralCashout.requested_at.desc()).all()

    return {
        "summary": {
            "my_code": user.referral_code,
            "total_referred_count": referred_count,
            "available_credits": float(user.referral_credits or 0),
            "lifetime_credits": float(user.lifetime_referral_credits or 0),
            "credit_per_referral": float(REFERRAL_CREDIT_AMOUNT),
            "min_cashout": float(MIN_CASHOUT_AMOUNT),
            "can_cash_out": (user.referral_credits or 0) >= MIN_CASHOUT_AMOUNT,
        },
        "awards": [
            {
                "id": a.id,
                "referred_handle": a.referred_user.handle if a.referred_user else None,
                "booking_id": a.booking_id,
                "amount": float(a.credit_amount),
                "awarded_at": format_local(a.awarded_at, local_tz),
            } for a in awards
        ],
        "cashouts": [
            {
                "id": c.id,
                "amount": float(c.credit_amount),
                "currency": c.selected_currency,
                "network": c.selected_network,
                "status": c.status,
                "tx_hash": c.tx_hash,
                "requested_at": format_local(c.requested_at, local_tz),
                "processed_at": format_local(c.processed_at, local_tz),
            } for c in cashouts
        ],
    }


@router.post("/apply")
def apply_code(
    data: ReferralApply,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    user = db.query(User).filter(User.id == actor.user.id).with_for_update().first()
    referrer = apply_referral_code(db, user, data.code)
    register_action_log(db, user.id, "REFERRAL_APPLIED", "POST", "/referrals/apply", {"code": data.code.upper()}, request)
    db.commit()
    return {"status": "success", "referrer_handle": referrer.handle}


@router.post("/cashout", status_code=201)
def cash_out(
    data: CashoutRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    try:
        user = db.query(User).filter(User.id == actor.user.id).with_for_update().first()
        cashout = request_cashout(db, user, data.network, data.payout_address)
        db.flush()

        notify_admins(db, "cashout_requested", "Referral cash out requested",
                      f"@{user.handle} requested {cashout.credit_amount} {cashout.selected_currency} on {cashout.selected_network}.")
        register_action_log(db, user.id, "REFERRAL_CASHOUT_REQUESTED", "POST", "/referrals/cashout",
                            {"amount": str(cashout.credit_amount), "network": cashout.selected_network}, request)
        db.commit()

        return {
            "status": "success",
            "cashout_id": cashout.id,
            "amount": float(cashout.credit_amount),
            "cashout_status": cashout.status,
        }

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Cash out failed for {actor.user.id}: {e}")
        raise HTTPException(status_code=500, detail="error_requesting_cashout")
