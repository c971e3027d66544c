"""
Booking lifecycle.

Every status change goes through `transition_booking`, which checks the edge,
checks who is asking, stamps the matching timestamp and runs the side effects
(referral credit on acceptance, notifications). Callers own the commit.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from core.config import AUTO_RELEASE_DAYS
from core.errors import InvalidTransition, PermissionDenied, ValidationFailed, NotFound
from core.utils import utcnow, as_utc, format_local
from models import (
    Booking, BookingStatus, BookingMessage, Dispute, DisputeStatus,
    PaymentStatus, Service, User, UserRole
)
from services.chains import validate_transaction_hash
from services.notifications import notify, notify_admins
from services.payouts import payment_breakdown, refund_amount
from services.referrals import award_referral_credit

logger = logging.getLogger(__name__)

S = BookingStatus

TERMINAL_STATUSES = {S.RELEASED, S.REFUNDED, S.CANCELED}

ALLOWED_TRANSITIONS = {
    S.DRAFT: {S.PAID, S.CANCELED, S.REFUNDED},
    S.PAID: {S.IN_PROGRESS, S.DISPUTED, S.CANCELED, S.REFUNDED},
    S.IN_PROGRESS: {S.DELIVERED, S.DISPUTED, S.CANCELED, S.REFUNDED},
    S.DELIVERED: {S.ACCEPTED, S.DISPUTED, S.CANCELED, S.REFUNDED},
    S.ACCEPTED: {S.RELEASED, S.CANCELED, S.REFUNDED},
    S.DISPUTED: {S.ACCEPTED, S.CANCELED, S.REFUNDED},
    S.RELEASED: set(),
    S.REFUNDED: set(),
    S.CANCELED: set(),
}

# Who besides an admin may take an edge. "system" = payment verification / scheduler.
NON_ADMIN_ACTORS = {
    (S.DRAFT, S.PAID): {"system"},
    (S.DRAFT, S.CANCELED): {"client"},
    (S.PAID, S.IN_PROGRESS): {"creator"},
    (S.PAID, S.DISPUTED): {"client", "creator"},
    (S.IN_PROGRESS, S.DELIVERED): {"creator"},
    (S.IN_PROGRESS, S.DISPUTED): {"client", "creator"},
    (S.DELIVERED, S.ACCEPTED): {"client", "system"},
    (S.DELIVERED, S.DISPUTED): {"client", "creator"},
    (S.ACCEPTED, S.RELEASED): {"system"},
}

TIMESTAMP_FIELDS = {
    S.IN_PROGRESS: "work_started_at",
    S.DELIVERED: "delivered_at",
    S.ACCEPTED: "accepted_at",
    S.RELEASED: "released_at",
    S.REFUNDED: "refunded_at",
    S.CANCELED: "canceled_at",
}


def can_transition(current: str, target: str) -> bool:
    try:
        return S(target) in ALLOWED_TRANSITIONS[S(current)]
    except ValueError:
        return False


def actor_kinds(booking: Booking, actor: Optional[User]) -> set:
    if actor is None:
        return {"system"}
    kinds = set()
    if actor.role == UserRole.ADMIN.value:
        kinds.add("admin")
    if actor.id == booking.client_id:
        kinds.add("client")
    if actor.id == booking.creator_id:
        kinds.add("creator")
    return kinds


def transition_booking(
    db: Session,
    booking: Booking,
    target,
    actor: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Moves `booking` to `target` on behalf of `actor` (None = system)."""
    current = S(booking.status)
    target = S(target)

    if target not in ALLOWED_TRANSITIONS[current]:
        if current in TERMINAL_STATUSES:
            raise InvalidTransition(f"Booking is already {current.value} and can no longer change.")
        raise InvalidTransition(f"A booking cannot move from {current.value} to {target.value}.")

    kinds = actor_kinds(booking, actor)
    allowed = NON_ADMIN_ACTORS.get((current, target), set()) | {"admin"}
    if not kinds & allowed:
        raise PermissionDenied(f"You are not allowed to move this booking to {target.value}.")

    now = now or utcnow()
    booking.status = target.value
    field = TIMESTAMP_FIELDS.get(target)
    if field:
        setattr(booking, field, now)

    logger.info(f"📦 Booking {booking.id}: {current.value} -> {target.value} by {sorted(kinds)}")

    if target == S.ACCEPTED:
        award_referral_credit(db, booking)

    _notify_status_change(db, booking, target)
    return booking


def _notify_status_change(db: Session, booking: Booking, target: BookingStatus):
    if target == S.PAID:
        notify(db, booking.creator_id, "booking_paid", "New paid booking",
               f"Booking #{booking.id} has been paid. You can start working on it.", booking_id=booking.id)
    elif target == S.DELIVERED:
        notify(db, booking.client_id, "booking_delivered", "Delivery ready",
               f"Your booking #{booking.id} was delivered. Review it within {AUTO_RELEASE_DAYS} days.",
               booking_id=booking.id)
    elif target == S.ACCEPTED:
        notify(db, booking.creator_id, "booking_accepted", "Delivery accepted",
               f"Booking #{booking.id} was accepted. Funds will be released shortly.", booking_id=booking.id)
    elif target == S.RELEASED:
        notify(db, booking.creator_id, "escrow_released", "Funds released",
               f"Escrow for booking #{booking.id} has been released.", booking_id=booking.id)
    elif target in (S.REFUNDED, S.CANCELED):
        for uid in (booking.client_id, booking.creator_id):
            notify(db, uid, f"booking_{target.value}", f"Booking {target.value}",
                   f"Booking #{booking.id} was {target.value}.", booking_id=booking.id)


# --- CREATION & READ MODEL ---

def create_booking(db: Session, client: User, service: Service) -> Booking:
    if not service.active:
        raise ValidationFailed("This service is no longer available.", code="SERVICE_INACTIVE")
    creator = service.creator
    if not creator or not creator.approved:
        raise ValidationFailed("This creator is not accepting bookings yet.", code="CREATOR_NOT_APPROVED")
    if creator.user_id == client.id:
        raise ValidationFailed("You cannot book your own service.", code="SELF_BOOKING")

    booking = Booking(
        client_id=client.id,
        creator_id=creator.user_id,
        service_id=service.id,
        status=S.DRAFT.value,
        usdc_amount=service.price_usdc,
        deliverable_urls=[],
    )
    db.add(booking)
    return booking


def release_at(booking: Booking) -> Optional[datetime]:
    if not booking.delivered_at:
        return None
    return as_utc(booking.delivered_at) + timedelta(days=AUTO_RELEASE_DAYS)


def eligible_for_paid(booking: Booking) -> bool:
    return booking.status == S.DRAFT.value and any(
        p.status == PaymentStatus.VERIFIED.value for p in booking.payments
    )


def snapshot_fee_rate(booking: Booking) -> Optional[Decimal]:
    for p in booking.payments:
        if p.status == PaymentStatus.VERIFIED.value and p.fee_rate is not None:
            return p.fee_rate
    return None


def booking_to_dict(booking: Booking, local_tz=None) -> dict:
    breakdown = payment_breakdown(booking.usdc_amount, snapshot_fee_rate(booking))
    return {
        "id": booking.id,
        "status": booking.status,
        "client_id": booking.client_id,
        "creator_id": booking.creator_id,
        "service_id": booking.service_id,
        "service_title": booking.service.title if booking.service else None,
        "usdc_amount": float(booking.usdc_amount),
        "platform_fee": float(breakdown["platform_fee"]),
        "creator_payout": float(breakdown["creator_payout"]),
        "chain": booking.chain,
        "tx_hash": booking.tx_hash,
        "deliverable_urls": booking.deliverable_urls or [],
        "delivery_note": booking.delivery_note,
        "eligible_for_paid": eligible_for_paid(booking),
        "created_at": format_local(booking.created_at, local_tz),
        "delivered_at": format_local(booking.delivered_at, local_tz),
        "accepted_at": format_local(booking.accepted_at, local_tz),
        "released_at": format_local(booking.released_at, local_tz),
        "refunded_at": format_local(booking.refunded_at, local_tz),
        "refund_amount": float(booking.refund_amount) if booking.refund_amount is not None else None,
        "refund_tx_hash": booking.refund_tx_hash,
        "release_at": format_local(release_at(booking), local_tz),
    }


# --- WORKFLOW STEPS ---

def deliver_booking(db: Session, booking: Booking, creator: User, deliverable_urls: List[str], note: str = None):
    # paid -> in_progress is implicit when the creator delivers straight away
    if booking.status == S.PAID.value:
        transition_booking(db, booking, S.IN_PROGRESS, creator)

    transition_booking(db, booking, S.DELIVERED, creator)
    booking.deliverable_urls = list(deliverable_urls)
    booking.delivery_note = note

    db.add(BookingMessage(
        booking_id=booking.id,
        from_user_id=creator.id,
        to_user_id=booking.client_id,
        body=f"Delivery completed: {note or 'Files delivered'}",
        attachments={"deliverables": list(deliverable_urls)},
    ))
    return booking


def open_dispute(db: Session, booking: Booking, actor: User, reason: str) -> Dispute:
    if actor.id == booking.client_id:
        opened_by = "client"
    elif actor.id == booking.creator_id:
        opened_by = "creator"
    else:
        raise PermissionDenied("Only the client or the creator can open a dispute.")

    transition_booking(db, booking, S.DISPUTED, actor)

    dispute = Dispute(
        booking_id=booking.id,
        opened_by=opened_by,
        opened_by_user_id=actor.id,
        reason=reason,
        status=DisputeStatus.OPEN.value,
    )
    db.add(dispute)
    db.flush()

    other_party = booking.creator_id if opened_by == "client" else booking.client_id
    notify(db, other_party, "dispute_opened", "Dispute opened",
           f"A dispute was opened on booking #{booking.id}. An admin will review it within 24 hours.",
           booking_id=booking.id, dispute_id=dispute.id)
    notify_admins(db, "dispute_opened", "New dispute",
                  f"Booking #{booking.id}: {reason}", booking_id=booking.id, dispute_id=dispute.id)
    return dispute


def _check_refund_hash(booking: Booking, refund_tx_hash: Optional[str]):
    if refund_tx_hash and not validate_transaction_hash(refund_tx_hash, booking.chain or ""):
        raise ValidationFailed(f"Invalid transaction hash format for {booking.chain}", code="INVALID_TX_HASH")


def _refundable_amount(booking: Booking) -> Decimal:
    # Nothing reached escrow while the booking has no verified payment
    if not any(p.status == PaymentStatus.VERIFIED.value for p in booking.payments):
        return Decimal("0.00")
    return refund_amount(booking.usdc_amount, snapshot_fee_rate(booking))


def release_booking(db: Session, booking: Booking, actor: Optional[User] = None,
                    now: Optional[datetime] = None) -> Booking:
    """Frees the escrow of an accepted booking so the creator payout can be recorded."""
    return transition_booking(db, booking, S.RELEASED, actor, now=now)


def refund_booking(
    db: Session,
    booking: Booking,
    admin: User,
    refund_tx_hash: str = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Manual refund of a booking that has no open dispute."""
    if any(d.status == DisputeStatus.OPEN.value for d in booking.disputes):
        raise InvalidTransition("This booking has an open dispute. Resolve the dispute instead.",
                                code="DISPUTE_OPEN")
    _check_refund_hash(booking, refund_tx_hash)

    now = now or utcnow()
    transition_booking(db, booking, S.REFUNDED, admin, now=now)
    booking.refund_amount = _refundable_amount(booking)
    booking.refund_tx_hash = refund_tx_hash
    return booking


def resolve_dispute(
    db: Session,
    dispute: Dispute,
    admin: User,
    resolution: str,
    note: str = None,
    refund_tx_hash: str = None,
) -> Dispute:
    if dispute.status != DisputeStatus.OPEN.value:
        raise InvalidTransition("This dispute has already been resolved.")

    booking = dispute.booking
    if booking.status != S.DISPUTED.value:
        raise InvalidTransition(f"Booking is {booking.status}, not disputed.")

    now = utcnow()

    if resolution == "refund":
        _check_refund_hash(booking, refund_tx_hash)
        transition_booking(db, booking, S.REFUNDED, admin, now=now)
        dispute.refund_amount = refund_amount(booking.usdc_amount, snapshot_fee_rate(booking))
        if refund_tx_hash:
            dispute.refund_tx_hash = refund_tx_hash
            dispute.refunded_at = now
    elif resolution == "release":
        transition_booking(db, booking, S.ACCEPTED, admin, now=now)
        release_booking(db, booking, admin, now=now)
    else:
        raise ValidationFailed("resolution must be 'refund' or 'release'")

    dispute.status = DisputeStatus.RESOLVED.value
    dispute.resolution = resolution
    dispute.resolution_note = note
    dispute.resolved_at = now
    dispute.resolved_by = admin.id

    for uid in (booking.client_id, booking.creator_id):
        notify(db, uid, "dispute_resolved", "Dispute resolved",
               f"The dispute on booking #{booking.id} was resolved: {resolution}.",
               booking_id=booking.id, dispute_id=dispute.id)
    return dispute


def auto_accept_deliveries(db: Session, now: Optional[datetime] = None) -> List[int]:
    """Accepts every delivery left unreviewed for AUTO_RELEASE_DAYS."""
    now = now or utcnow()
    cutoff = now - timedelta(days=AUTO_RELEASE_DAYS)

    due = db.query(Booking).filter(
        Booking.status == S.DELIVERED.value,
        Booking.delivered_at.isnot(None),
        Booking.delivered_at <= cutoff
    ).order_by(Booking.delivered_at.asc()).with_for_update().all()

    accepted = []
    for booking in due:
        transition_booking(db, booking, S.ACCEPTED, actor=None, now=now)
        accepted.append(booking.id)

    if accepted:
        logger.info(f"⏰ Auto-accepted {len(accepted)} deliveries older than {AUTO_RELEASE_DAYS} days")
    return accepted


def release_accepted_bookings(db: Session, now: Optional[datetime] = None) -> List[int]:
    """Releases the escrow of every accepted booking (system actor)."""
    now = now or utcnow()
    due = db.query(Booking).filter(
        Booking.status == S.ACCEPTED.value
    ).order_by(Booking.accepted_at.asc(), Booking.id.asc()).with_for_update().all()

    released = []
    for booking in due:
        release_booking(db, booking, actor=None, now=now)
        released.append(booking.id)

    if released:
        logger.info(f"🔓 Released escrow for {len(released)} accepted bookings")
    return released


def get_booking_or_404(db: Session, booking_id: int, lock: bool = False) -> Booking:
    query = db.query(Booking).filter(Booking.id == booking_id)
    if lock:
        query = query.with_for_update()
    booking = query.first()
    if not booking:
        raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
    return booking
