"""
Crypto payments: payer submission and manual admin review.

A payment is only a declaration (network + tx hash) until an admin checks the
chain and verifies it; nothing here talks to a blockchain.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from core.config import (
    CREATOR_TIERS, PLATFORM_FEE_RATE, PAYMENT_RATE_LIMIT, PAYMENT_RATE_WINDOW_SECONDS
)
from core.errors import (
    ValidationFailed, NotFound, DuplicateEntry, InvalidTransition, PermissionDenied, RateLimited
)
from core.rate_limit import RateLimiter
from core.utils import utcnow, format_local
from models import (
    Booking, BookingStatus, Payment, PaymentStatus, PaymentType,
    PlatformWallet, SubscriptionWallet, User
)
from services.bookings import transition_booking
from services.chains import normalize_network, validate_transaction_hash, explorer_url, currency_for
from services.notifications import notify, notify_admins
from services.payouts import payment_breakdown
from services.wallets import active_wallet

logger = logging.getLogger(__name__)

payment_limiter = RateLimiter(PAYMENT_RATE_LIMIT, PAYMENT_RATE_WINDOW_SECONDS)

OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING.value, PaymentStatus.VERIFIED.value)
TIER_ORDER = list(CREATOR_TIERS)


def tier_rank(tier: Optional[str]) -> int:
    return TIER_ORDER.index(tier) if tier in CREATOR_TIERS else -1


def submit_payment(
    db: Session,
    payer: User,
    network: str,
    tx_hash: str,
    payment_type: str = PaymentType.SERVICE_BOOKING.value,
    booking_id: Optional[int] = None,
    tier: Optional[str] = None,
) -> Payment:
    """
    Records a pending payment. Every check runs before the row is created, so
    a rejected attempt leaves nothing behind.
    """
    allowed, retry_in = payment_limiter.hit(f"payment:{payer.id}")
    if not allowed:
        raise RateLimited(f"Too many payment attempts. Please wait {retry_in} seconds.")

    network_name = normalize_network(network)
    if network_name is None:
        raise ValidationFailed(f"Unsupported network: {network}", code="UNSUPPORTED_NETWORK")

    tx_hash = (tx_hash or "").strip()
    if not validate_transaction_hash(tx_hash, network_name):
        raise ValidationFailed(f"Invalid transaction hash format for {network_name}", code="INVALID_TX_HASH")

    if db.query(Payment.id).filter(Payment.tx_hash == tx_hash).first():
        raise DuplicateEntry("This transaction hash has already been submitted.")

    booking = None
    if payment_type == PaymentType.SERVICE_BOOKING.value:
        booking = db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if not booking:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.client_id != payer.id:
            raise PermissionDenied("You can only pay for your own bookings.")
        if booking.status != BookingStatus.DRAFT.value:
            raise InvalidTransition(f"Booking is {booking.status}; only draft bookings can be paid.")

        open_payment = db.query(Payment.id).filter(
            Payment.booking_id == booking.id,
            Payment.status.in_(OPEN_PAYMENT_STATUSES)
        ).first()
        if open_payment:
            raise DuplicateEntry("A payment for this booking is already under review.", code="PAYMENT_ALREADY_SUBMITTED")

        wallet = active_wallet(db, PlatformWallet, network_name)
        amount = booking.usdc_amount

    elif payment_type == PaymentType.CREATOR_TIER.value:
        plan = CREATOR_TIERS.get(tier or "")
        if not plan or plan["price"] <= 0:
            raise ValidationFailed(f"Invalid paid tier: {tier}", code="INVALID_TIER")
        if not payer.creator:
            raise PermissionDenied("Only creators can purchase a tier.", code="CREATOR_PROFILE_REQUIRED")
        if tier_rank(tier) <= tier_rank(payer.creator.tier):
            raise ValidationFailed(f"You are already on the {payer.creator.tier} tier.", code="TIER_NOT_AN_UPGRADE")

        wallet = active_wallet(db, SubscriptionWallet, network_name)
        amount = plan["price"]

    else:
        raise ValidationFailed(f"Unknown payment type: {payment_type}")

    if not wallet:
        raise ValidationFailed(f"Payments on {network_name} are not available right now.", code="WALLET_NOT_CONFIGURED")

    payment = Payment(
        user_id=payer.id,
        creator_id=booking.creator_id if booking else None,
        service_id=booking.service_id if booking else None,
        booking_id=booking.id if booking else None,
        payment_type=payment_type,
        tier=tier if payment_type == PaymentType.CREATOR_TIER.value else None,
        network=network_name,
        currency=currency_for(network_name),
        amount=amount,
        admin_wallet_address=wallet.wallet_address,
        tx_hash=tx_hash,
        status=PaymentStatus.PENDING.value,
    )
    db.add(payment)

    if booking:
        booking.chain = network_name
        booking.tx_hash = tx_hash
        booking.payment_address = wallet.wallet_address

    db.flush()
    notify_admins(db, "payment_submitted", "Payment awaiting verification",
                  f"{amount} {payment.currency} on {network_name} from @{payer.handle}",
                  payment_id=payment.id, booking_id=payment.booking_id)

    logger.info(f"💸 Payment {payment.id} submitted by {payer.id} ({payment_type}, {network_name})")
    return payment


def _require_pending(payment: Payment):
    if payment.status != PaymentStatus.PENDING.value:
        raise InvalidTransition(f"Payment is already {payment.status}.")


def verify_payment(db: Session, payment: Payment, admin: User, now: Optional[datetime] = None) -> Payment:
    _require_pending(payment)
    now = now or utcnow()

    payment.status = PaymentStatus.VERIFIED.value
    payment.verified_at = now
    payment.verified_by = admin.id
    payment.fee_rate = PLATFORM_FEE_RATE

    if payment.booking_id:
        booking = db.query(Booking).filter(Booking.id == payment.booking_id).with_for_update().first()
        if booking and booking.status == BookingStatus.DRAFT.value:
            transition_booking(db, booking, BookingStatus.PAID, admin, now=now)

    if payment.payment_type == PaymentType.CREATOR_TIER.value:
        payer = db.get(User, payment.user_id)
        if payer and payer.creator and tier_rank(payment.tier) > tier_rank(payer.creator.tier):
            payer.creator.tier = payment.tier
            logger.info(f"⭐ Creator {payer.id} upgraded to {payment.tier}")
        elif payer and payer.creator:
            logger.warning(f"Tier payment {payment.id} would not upgrade creator {payer.id} ({payer.creator.tier}), tier kept")

    notify(db, payment.user_id, "payment_verified", "Payment verified",
           f"Your payment of {payment.amount} {payment.currency} was verified.",
           payment_id=payment.id, booking_id=payment.booking_id)
    return payment


def reject_payment(db: Session, payment: Payment, admin: User, reason: str = None,
                   now: Optional[datetime] = None) -> Payment:
    _require_pending(payment)

    payment.status = PaymentStatus.REJECTED.value
    payment.verified_at = now or utcnow()
    payment.verified_by = admin.id
    payment.rejection_reason = reason

    # The booking stays a draft so the client can submit another transaction
    if payment.booking_id:
        booking = db.get(Booking, payment.booking_id)
        if booking and booking.tx_hash == payment.tx_hash:
            booking.tx_hash = None

    notify(db, payment.user_id, "payment_rejected", "Payment rejected",
           f"Your payment could not be verified. {reason or ''}".strip(),
           payment_id=payment.id, booking_id=payment.booking_id)
    return payment


def record_payout(db: Session, payment: Payment, admin: User, payout_tx_hash: str,
                  now: Optional[datetime] = None) -> Payment:
    """Stores the hash of the off-ledger transfer that paid the creator."""
    if payment.payment_type != PaymentType.SERVICE_BOOKING.value or payment.status != PaymentStatus.VERIFIED.value:
        raise InvalidTransition("Only verified booking payments can be paid out.")
    if payment.payout_tx_hash:
        raise DuplicateEntry("A payout was already recorded for this payment.", code="PAYOUT_ALREADY_RECORDED")

    booking = payment.booking
    if not booking or booking.status != BookingStatus.RELEASED.value:
        raise InvalidTransition("Escrow must be released before paying the creator.", code="BOOKING_NOT_RELEASED")

    payout_tx_hash = (payout_tx_hash or "").strip()
    if not validate_transaction_hash(payout_tx_hash, payment.network):
        raise ValidationFailed(f"Invalid transaction hash format for {payment.network}", code="INVALID_TX_HASH")

    payment.payout_status = "completed"
    payment.payout_tx_hash = payout_tx_hash
    payment.paid_out_at = now or utcnow()
    payment.paid_out_by = admin.id

    breakdown = payment_breakdown(payment.amount, payment.fee_rate)
    notify(db, payment.creator_id, "payout_sent", "Payout sent",
           f"{breakdown['creator_payout']} {payment.currency} was sent for booking #{booking.id}.",
           payment_id=payment.id, booking_id=booking.id)
    return payment


def get_payment_or_404(db: Session, payment_id: int, lock: bool = False) -> Payment:
    query = db.query(Payment).filter(Payment.id == payment_id)
    if lock:
        query = query.with_for_update()
    payment = query.first()
    if not payment:
        raise NotFound("Payment not found", code="PAYMENT_NOT_FOUND")
    return payment


def payment_to_dict(payment: Payment, local_tz=None) -> dict:
    breakdown = payment_breakdown(payment.amount, payment.fee_rate)
    return {
        "id": payment.id,
        "user_id": payment.user_id,
        "creator_id": payment.creator_id,
        "booking_id": payment.booking_id,
        "payment_type": payment.payment_type,
        "tier": payment.tier,
        "network": payment.network,
        "currency": payment.currency,
        "amount": float(payment.amount),
        "platform_fee": float(breakdown["platform_fee"]),
        "creator_payout": float(breakdown["creator_payout"]),
        "admin_wallet_address": payment.admin_wallet_address,
        "tx_hash": payment.tx_hash,
        "explorer_url": explorer_url(payment.network, payment.tx_hash),
        "status": payment.status,
        "rejection_reason": payment.rejection_reason,
        "verified_at": format_local(payment.verified_at, local_tz),
        "payout_status": payment.payout_status,
        "payout_tx_hash": payment.payout_tx_hash,
        "payout_explorer_url": explorer_url(payment.network, payment.payout_tx_hash) if payment.payout_tx_hash else None,
        "paid_out_at": format_local(payment.paid_out_at, local_tz),
        "created_at": format_local(payment.created_at, local_tz),
    }


def creator_payout_summary(db: Session, creator_id: str, local_tz=None) -> dict:
    payments = db.query(Payment).filter(
        Payment.creator_id == creator_id,
        Payment.payment_type == PaymentType.SERVICE_BOOKING.value,
        Payment.status == PaymentStatus.VERIFIED.value
    ).order_by(Payment.verified_at.desc()).all()

    items = [payment_to_dict(p, local_tz) for p in payments]
    completed = [i for i in items if i["payout_tx_hash"]]
    pending = [i for i in items if not i["payout_tx_hash"]]

    return {
        "summary": {
            "total_earned": round(sum(i["creator_payout"] for i in items), 2),
            "paid_out": round(sum(i["creator_payout"] for i in completed), 2),
            "pending_payout": round(sum(i["creator_payout"] for i in pending), 2),
            "platform_fees": round(sum(i["platform_fee"] for i in items), 2),
        },
        "pending": pending,
        "completed": completed,
    }
