import logging
import secrets
import string
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import REFERRAL_CREDIT_AMOUNT, MIN_CASHOUT_AMOUNT
from core.errors import ValidationFailed, NotFound, DuplicateEntry
from models import User, Booking, ReferralCreditAward, ReferralCashout, CashoutStatus
from services.chains import normalize_network, validate_wallet_address, currency_for
from services.notifications import notify

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def generate_referral_code(db: Session) -> str:
    while True:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        if not db.query(User.id).filter(User.referral_code == code).first():
            return code


def apply_referral_code(db: Session, user: User, code: str) -> User:
    """Links `user` to the owner of `code`. A referrer can only be set once."""
    if user.referred_by:
        raise DuplicateEntry("You have already used a referral code", code="REFERRAL_ALREADY_APPLIED")

    clean_code = (code or "").strip().upper()
    if len(clean_code) != CODE_LENGTH or any(c not in CODE_ALPHABET for c in clean_code):
        raise ValidationFailed("Invalid referral code format")

    referrer = db.query(User).filter(User.referral_code == clean_code).first()
    if not referrer:
        raise NotFound("Invalid referral code", code="REFERRAL_CODE_NOT_FOUND")
    if referrer.id == user.id:
        raise ValidationFailed("You cannot refer yourself", code="SELF_REFERRAL")

    user.referred_by = referrer.id
    return referrer


def award_referral_credit(db: Session, booking: Booking) -> Optional[ReferralCreditAward]:
    """
    Credits the client's referrer once per (referrer, referred user) pair.

    Runs inside the transaction that accepts the booking; the unique key on
    referral_credits_awarded is what makes a second award impossible.
    """
    client = booking.client or db.get(User, booking.client_id)
    if not client or not client.referred_by:
        return None

    referrer = db.get(User, client.referred_by)
    if not referrer:
        return None

    already = db.query(ReferralCreditAward.id).filter(
        ReferralCreditAward.referrer_id == referrer.id,
        ReferralCreditAward.referred_user_id == client.id
    ).first()
    if already:
        return None

    award = ReferralCreditAward(
        referrer_id=referrer.id,
        referred_user_id=client.id,
        booking_id=booking.id,
        credit_amount=REFERRAL_CREDIT_AMOUNT,
    )

    # Open the outer transaction first so the savepoint nests inside it
    db.flush()
    try:
        with db.begin_nested():
            db.add(award)
    except IntegrityError:
        logger.info(f"Referral credit for {referrer.id} <- {client.id} already awarded, skipping")
        return None

    referrer.referral_credits = Decimal(referrer.referral_credits or 0) + REFERRAL_CREDIT_AMOUNT
    referrer.lifetime_referral_credits = Decimal(referrer.lifetime_referral_credits or 0) + REFERRAL_CREDIT_AMOUNT

    notify(
        db,
        referrer.id,
        type="referral_credit",
        title="Referral credit earned",
        message=f"@{client.handle} completed their first booking. ${REFERRAL_CREDIT_AMOUNT} added to your credits.",
        booking_id=booking.id,
    )
    logger.info(f"🎁 Referral credit {REFERRAL_CREDIT_AMOUNT} -> {referrer.id} (booking {booking.id})")
    return award


def adjust_credits(db: Session, user: User, amount: Decimal) -> Decimal:
    """Manual admin adjustment. The available balance never goes below zero."""
    amount = Decimal(str(amount))
    current = Decimal(user.referral_credits or 0)
    new_balance = max(Decimal("0"), current + amount)
    user.referral_credits = new_balance
    if amount > 0:
        user.lifetime_referral_credits = Decimal(user.lifetime_referral_credits or 0) + amount
    return new_balance


def request_cashout(db: Session, user: User, network: str, payout_address: str) -> ReferralCashout:
    available = Decimal(user.referral_credits or 0)
    if available < MIN_CASHOUT_AMOUNT:
        raise ValidationFailed(f"Minimum cash out is ${MIN_CASHOUT_AMOUNT}", code="CASHOUT_BELOW_MINIMUM")

    network_name = normalize_network(network)
    if network_name is None:
        raise ValidationFailed(f"Unsupported network: {network}")

    check = validate_wallet_address(payout_address, network_name)
    if not check.is_valid:
        raise ValidationFailed(check.error, code="INVALID_WALLET_ADDRESS")

    cashout = ReferralCashout(
        user_id=user.id,
        credit_amount=available,
        selected_currency=currency_for(network_name),
        selected_network=network_name,
        payout_address=check.address,
        status=CashoutStatus.PENDING.value,
    )
    db.add(cashout)
    user.referral_credits = Decimal("0")
    return cashout
