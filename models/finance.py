from enum import Enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, Numeric, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from core.database import Base, BigId


class PaymentType(str, Enum):
    SERVICE_BOOKING = "service_booking"
    CREATOR_TIER = "creator_tier"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class CashoutStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Payment(Base):
    """Transferencia on-chain declarada por el pagador (revisada por un admin)"""
    __tablename__ = "payments"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    creator_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    service_id = Column(BigId, ForeignKey("services.id"), nullable=True)
    booking_id = Column(BigId, ForeignKey("bookings.id"), index=True, nullable=True)

    payment_type = Column(String, nullable=False)
    tier = Column(String, nullable=True)  # solo pagos creator_tier
    network = Column(String, nullable=False)
    currency = Column(String, nullable=False)
    amount = Column(Numeric(18, 6), nullable=False)
    admin_wallet_address = Column(Text, nullable=False)
    tx_hash = Column(String, unique=True, nullable=False)

    status = Column(String, default=PaymentStatus.PENDING.value, nullable=False, index=True)
    # Comision vigente al momento de verificar el pago
    fee_rate = Column(Numeric(5, 4), nullable=True)
    verified_at = Column(DateTime(timezone=True))
    verified_by = Column(String, ForeignKey("users.id"))
    rejection_reason = Column(Text)

    payout_status = Column(String)
    payout_tx_hash = Column(Text)
    paid_out_at = Column(DateTime(timezone=True))
    paid_out_by = Column(String, ForeignKey("users.id"))

    booking = relationship("Booking", back_populates="payments")
    payer = relationship("User", foreign_keys=[user_id])


class WalletColumns:
    """Columnas compartidas por las tablas de wallets (una fila por red)"""

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    network = Column(String, unique=True, nullable=False)
    name = Column(Text, nullable=False)
    wallet_address = Column(Text, nullable=False)
    explorer_url = Column(Text)
    active = Column(Boolean, default=True, nullable=False)
    updated_by = Column(String)


class PlatformWallet(WalletColumns, Base):
    """Wallets de escrow que reciben los pagos de servicios"""
    __tablename__ = "platform_wallets"


class SubscriptionWallet(WalletColumns, Base):
    """Wallets que reciben los pagos de planes de creador"""
    __tablename__ = "subscription_wallets"


class ReferralCreditAward(Base):
    """Un credito por par (referente, referido)"""
    __tablename__ = "referral_credits_awarded"
    __table_args__ = (
        UniqueConstraint("referrer_id", "referred_user_id", name="uq_referral_award_pair"),
    )

    id = Column(BigId, primary_key=True, index=True)
    awarded_at = Column(DateTime(timezone=True), server_default=func.now())
    referrer_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    referred_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    booking_id = Column(BigId, ForeignKey("bookings.id"), nullable=False)
    credit_amount = Column(Numeric(12, 2), nullable=False)

    referred_user = relationship("User", foreign_keys=[referred_user_id])


class ReferralCashout(Base):
    """Retiro de creditos de referidos (procesado a mano por un admin)"""
    __tablename__ = "referral_cashouts"

    id = Column(BigId, primary_key=True, index=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)

    credit_amount = Column(Numeric(12, 2), nullable=False)
    selected_currency = Column(String, nullable=False)
    selected_network = Column(String, nullable=False)
    payout_address = Column(Text, nullable=False)
    status = Column(String, default=CashoutStatus.PENDING.value, nullable=False)
    tx_hash = Column(Text)
    processed_at = Column(DateTime(timezone=True))
    processed_by = Column(String, ForeignKey("users.id"))

    user = relationship("User", foreign_keys=[user_id])
