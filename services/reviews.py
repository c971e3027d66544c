"""
Booking reviews.

Each participant of an accepted or released booking may review the other
party once. Reviews of a creator feed the `rating` / `review_count` aggregate
used to rank creator listings.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.errors import DuplicateEntry, InvalidTransition, PermissionDenied
from core.utils import format_local
from models import Booking, BookingStatus, Creator, Review, User
from services.notifications import notify

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = {BookingStatus.ACCEPTED.value, BookingStatus.RELEASED.value}


def refresh_creator_rating(db: Session, user_id: str):
    creator = db.query(Creator).filter(Creator.user_id == user_id).first()
    if not creator:
        return None

    avg_rating, count = db.query(func.avg(Review.rating), func.count(Review.id)).filter(
        Review.reviewee_id == user_id
    ).one()
    creator.rating = round(float(avg_rating), 2) if avg_rating is not None else 0.0
    creator.review_count = count
    return creator


def submit_review(db: Session, booking: Booking, reviewer: User, rating: int, comment: str = None) -> Review:
    if reviewer.id not in (booking.client_id, booking.creator_id):
        raise PermissionDenied("Only the client and the creator can review a booking.")
    if booking.status not in REVIEWABLE_STATUSES:
        raise InvalidTransition("Reviews can only be submitted for completed bookings.",
                                code="BOOKING_NOT_COMPLETED")

    already = db.query(Review.id).filter(
        Review.booking_id == booking.id,
        Review.reviewer_id == reviewer.id
    ).first()
    if already:
        raise DuplicateEntry("You have already reviewed this booking.", code="REVIEW_ALREADY_EXISTS")

    reviewee_id = booking.creator_id if reviewer.id == booking.client_id else booking.client_id
    review = Review(
        booking_id=booking.id,
        reviewer_id=reviewer.id,
        reviewee_id=reviewee_id,
        rating=rating,
        comment=(comment or "").strip() or None,
    )
    db.add(review)
    db.flush()

    refresh_creator_rating(db, reviewee_id)
    notify(db, reviewee_id, "new_review", "New review",
           f"@{reviewer.handle} left you a {rating}-star review.", booking_id=booking.id)

    logger.info(f"⭐ Review {review.id} on booking {booking.id}: {rating} stars for {reviewee_id}")
    return review


def review_to_dict(review: Review, local_tz=None) -> dict:
    return {
        "id": review.id,
        "booking_id": review.booking_id,
        "reviewer_id": review.reviewer_id,
        "reviewer_handle": review.reviewer.handle if review.reviewer else None,
        "reviewee_id": review.reviewee_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": format_local(review.created_at, local_tz),
    }
