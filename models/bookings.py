from enum import Enum
from sqlalchemy import Column, String, Text, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship
from core.database import Base, BigId, JsonData


class BookingStatus(str, Enum):
    """Estados del ciclo de vida de una reserva"""
    DRAFT = "draft"
    PAID = "paid"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    ACCEPTED = "accepted"
    DISPUTED = "disputed"
    REFUNDED = "refunded"
    RELEASED = "released"
    CANCELED = "canceled"


class DisputeStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class Booking(Base):
    """Compra de un servicio: cliente -> servicio (-> creador)"""
    __tablename__ = "bookings"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    client_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    creator_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    service_id = Column(BigId, ForeignKey("services.id"), index=True, nullable=False)

    status = Column(String, default=BookingStatus.DRAFT.value, nullable=False, index=True)
    usdc_amount = Column(Numeric(18, 6), nullable=False)
    chain = Column(String)
    tx_hash = Column(Text)
    payment_address = Column(Text)

    deliverable_urls = Column(JsonData, default=list)
    delivery_note = Column(Text)

    work_started_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    accepted_at = Column(DateTime(timezone=True))
    released_at = Column(DateTime(timezone=True))
    refunded_at = Column(DateTime(timezone=True))
    canceled_at = Column(DateTime(timezone=True))

    # Devolucion manual fuera de una disputa
    refund_amount = Column(Numeric(18, 6))
    refund_tx_hash = Column(Text)

    client = relationship("User", foreign_keys=[client_id])
    creator = relationship("User", foreign_keys=[creator_id])
    service = relationship("Service")
    payments = relationship("Payment", back_populates="booking")
    disputes = relationship("Dispute", back_populates="booking", cascade="all, delete-orphan")
    messages = relationship("BookingMessage", back_populates="booking", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="booking", cascade="all, delete-orphan")


class Dispute(Base):
    __tablename__ = "disputes"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    booking_id = Column(BigId, ForeignKey("bookings.id", ondelete="CASCADE"), index=True, nullable=False)

    opened_by = Column(String, nullable=False)  # "client" | "creator"
    opened_by_user_id = Column(String, ForeignKey("users.id"))
    reason = Column(Text, nullable=False)
    status = Column(String, default=DisputeStatus.OPEN.value, nullable=False)

    resolution = Column(String)  # "refund" | "release"
    resolution_note = Column(Text)
    refund_amount = Column(Numeric(18, 6))
    refund_tx_hash = Column(Text)
    refunded_at = Column(DateTime(timezone=True))
    resolved_at = Column(DateTime(timezone=True))
    resolved_by = Column(String, ForeignKey("users.id"))

    booking = relationship("Booking", back_populates="disputes")


class BookingMessage(Base):
    """Mensajes del chat de una reserva"""
    __tablename__ = "messages"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    booking_id = Column(BigId, ForeignKey("bookings.id", ondelete="CASCADE"), index=True, nullable=False)
    from_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=False)
    attachments = Column(JsonData)

    booking = relationship("Booking", back_populates="messages")


class Review(Base):
    """Resena de una reserva terminada (una por participante)"""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("booking_id", "reviewer_id", name="uq_reviews_booking_reviewer"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    booking_id = Column(BigId, ForeignKey("bookings.id", ondelete="CASCADE"), index=True, nullable=False)
    reviewer_id = Column(String, ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)

    rating = Column(Integer, nullable=False)
    comment = Column(Text)

    booking = relationship("Booking", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewer_id])
