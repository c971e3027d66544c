import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.errors import ValidationFailed, translate_integrity_error
from core.utils import resolve_timezone
from models import Payment
from schemas.financials import PaymentSubmit
from services.chains import explorer_url, normalize_network, SUPPORTED_NETWORKS
from services.payments import submit_payment, payment_to_dict, creator_payout_summary
from services.payouts import payment_breakdown

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_firebase_token)])


@router.post("/", status_code=201)
def submit_crypto_payment(
    data: PaymentSubmit,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    try:
        payment = submit_payment(
            db,
            actor.user,
            network=data.network,
            tx_hash=data.tx_hash,
            payment_type=data.payment_type,
            booking_id=data.booking_id,
            tier=data.tier,
        )
        db.commit()
        db.refresh(payment)
        return {
            "status": "success",
            "message": "Payment submitted. An admin will verify it shortly.",
            "payment": payment_to_dict(payment, resolve_timezone(timezone_name)),
        }

    except HTTPException as he:
        db.rollback()
        raise he
    except IntegrityError as e:
        # Dos envios simultaneos del mismo hash: el indice unico decide
        db.rollback()
        raise translate_integrity_error(e)
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Payment submission failed for {actor.user.id}: {e}")
        raise HTTPException(status_code=500, detail="error_submitting_payment")


@router.get("/mine")
def my_payments(
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    local_tz = resolve_timezone(timezone_name)
    payments = db.query(Payment).filter(Payment.user_id == actor.user.id).order_by(Payment.created_at.desc()).all()
    return [payment_to_dict(p, local_tz) for p in payments]


@router.get("/payouts")
def my_payouts(
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Creator view: earnings per verified booking, split by whether the payout was sent."""
    return creator_payout_summary(db, actor.user.id, resolve_timezone(timezone_name))


@router.get("/breakdown")
def fee_breakdown(amount: Decimal = Query(..., gt=0)):
    breakdown = payment_breakdown(amount)
    return {key: float(value) for key, value in breakdown.items()}


@router.get("/explorer")
def explorer_link(network: str, tx_hash: str):
    network_name = normalize_network(network)
    if network_name is None:
        raise ValidationFailed(
            f"Unsupported network: {network}. Use one of: {', '.join(SUPPORTED_NETWORKS)}",
            code="UNSUPPORTED_NETWORK"
        )
    return {"network": network_name, "tx_hash": tx_hash, "url": explorer_url(network_name, tx_hash)}
