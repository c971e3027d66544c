import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.errors import NotFound, PermissionDenied, ValidationFailed
from core.utils import register_action_log, resolve_timezone, format_local
from models import Booking, BookingMessage, BookingStatus, Review, Service, UserRole
from schemas.bookings import BookingCreate, DeliverySubmit, DisputeOpen, MessageCreate, ReviewCreate
from services.bookings import (
    create_booking, transition_booking, deliver_booking, open_dispute,
    booking_to_dict, get_booking_or_404
)
from services.notifications import notify
from services.reviews import submit_review, review_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_firebase_token)])


def _party_booking(db: Session, booking_id: int, actor: ActorContext, lock: bool = False) -> Booking:
    booking = get_booking_or_404(db, booking_id, lock=lock)
    is_party = actor.user.id in (booking.client_id, booking.creator_id)
    if not is_party and not actor.has_role(UserRole.ADMIN.value):
        raise PermissionDenied("You are not part of this booking.")
    return booking


def _commit_transition(db: Session, action, booking_id: int, timezone_name: str):
    try:
        booking = action()
        db.commit()
        db.refresh(booking)
        return booking_to_dict(booking, resolve_timezone(timezone_name))
    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Booking {booking_id} update failed: {e}")
        raise HTTPException(status_code=500, detail="error_updating_booking")


@router.post("/", status_code=201)
def book_service(
    data: BookingCreate,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    service = db.query(Service).filter(Service.id == data.service_id).first()
    if not service:
        raise NotFound("Service not found", code="SERVICE_NOT_FOUND")

    booking = create_booking(db, actor.user, service)
    db.commit()
    db.refresh(booking)
    return booking_to_dict(booking, resolve_timezone(timezone_name))


@router.get("/")
def list_my_bookings(
    as_role: str = None,
    status: str = None,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    uid = actor.user.id
    query = db.query(Booking)

    if as_role == "client":
        query = query.filter(Booking.client_id == uid)
    elif as_role == "creator":
        query = query.filter(Booking.creator_id == uid)
    elif as_role is None:
        query = query.filter(or_(Booking.client_id == uid, Booking.creator_id == uid))
    else:
        raise ValidationFailed("as_role must be 'client' or 'creator'")

    if status:
        query = query.filter(Booking.status == status)

    local_tz = resolve_timezone(timezone_name)
    return [booking_to_dict(b, local_tz) for b in query.order_by(Booking.created_at.desc()).all()]


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor)
    return booking_to_dict(booking, resolve_timezone(timezone_name))


@router.post("/{booking_id}/start")
def start_work(
    booking_id: int,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor, lock=True)
    return _commit_transition(
        db, lambda: transition_booking(db, booking, BookingStatus.IN_PROGRESS, actor.user), booking_id, timezone_name
    )


@router.post("/{booking_id}/deliver")
def deliver(
    booking_id: int,
    data: DeliverySubmit,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor, lock=True)
    return _commit_transition(
        db, lambda: deliver_booking(db, booking, actor.user, data.deliverable_urls, data.note), booking_id, timezone_name
    )


@router.post("/{booking_id}/accept")
def accept_delivery(
    booking_id: int,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor, lock=True)
    return _commit_transition(
        db, lambda: transition_booking(db, booking, BookingStatus.ACCEPTED, actor.user), booking_id, timezone_name
    )


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    request: Request,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor, lock=True)

    def action():
        transition_booking(db, booking, BookingStatus.CANCELED, actor.user)
        register_action_log(db, actor.user.id, "BOOKING_CANCELED", "POST", f"/bookings/{booking_id}/cancel", None, request)
        return booking

    return _commit_transition(db, action, booking_id, timezone_name)


@router.post("/{booking_id}/dispute", status_code=201)
def dispute_booking(
    booking_id: int,
    data: DisputeOpen,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor, lock=True)
    try:
        dispute = open_dispute(db, booking, actor.user, data.reason)
        db.commit()
        return {"status": "success", "dispute_id": dispute.id, "booking_status": booking.status}
    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Could not open dispute on booking {booking_id}: {e}")
        raise HTTPException(status_code=500, detail="error_opening_dispute")


# --- CHAT DE LA RESERVA ---

@router.get("/{booking_id}/messages")
def list_messages(
    booking_id: int,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor)
    local_tz = resolve_timezone(timezone_name)
    messages = db.query(BookingMessage).filter(
        BookingMessage.booking_id == booking.id
    ).order_by(BookingMessage.created_at.asc(), BookingMessage.id.asc()).all()

    return [
        {
            "id": m.id,
            "from_user_id": m.from_user_id,
            "to_user_id": m.to_user_id,
            "body": m.body,
            "attachments": m.attachments,
            "created_at": format_local(m.created_at, local_tz),
        } for m in messages
    ]


@router.post("/{booking_id}/messages", status_code=201)
def send_message(
    booking_id: int,
    data: MessageCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor)
    uid = actor.user.id
    if uid not in (booking.client_id, booking.creator_id):
        raise PermissionDenied("Only the client and the creator can chat on a booking.")

    recipient = booking.creator_id if uid == booking.client_id else booking.client_id
    message = BookingMessage(
        booking_id=booking.id,
        from_user_id=uid,
        to_user_id=recipient,
        body=data.body,
        attachments={"files": data.attachments} if data.attachments else None,
    )
    db.add(message)
    notify(db, recipient, "new_message", "New message", f"@{actor.user.handle}: {data.body[:80]}", booking_id=booking.id)
    db.commit()
    return {"status": "success", "message_id": message.id}


# --- RESENAS ---

@router.get("/{booking_id}/reviews")
def list_booking_reviews(
    booking_id: int,
    timezone_name: str = DEFAULT_TIMEZONE,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    booking = _party_booking(db, booking_id, actor)
    local_tz = resolve_timezone(timezone_name)
    reviews = db.query(Review).filter(Review.booking_id == booking.id).order_by(Review.id.asc()).all()
    return [review_to_dict(r, local_tz) for r in reviews]


@router.post("/{booking_id}/reviews", status_code=201)
def review_booking(
    booking_id: int,
    data: ReviewCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    try:
        booking = _party_booking(db, booking_id, actor)
        review = submit_review(db, booking, actor.user, data.rating, data.comment)
        register_action_log(db, actor.user.id, "REVIEW_SUBMITTED", "POST", f"/bookings/{booking_id}/reviews",
                            data.model_dump(), request)
        db.commit()
        db.refresh(review)
        return {"status": "success", "review": review_to_dict(review)}

    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Review on booking {booking_id} failed: {e}")
        raise HTTPException(status_code=500, detail="error_submitting_review")
