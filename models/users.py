from enum import Enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, Float, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship
from core.database import Base, BigId


class UserRole(str, Enum):
    CLIENT = "client"
    CREATOR = "creator"
    ADMIN = "admin"


class CreatorTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class User(Base):
    """Cuenta de la plataforma (id = Firebase UID)"""
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    email = Column(Text, unique=True)
    handle = Column(String(30), unique=True, index=True)
    role = Column(String, default=UserRole.CLIENT.value, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    banned = Column(Boolean, default=False, nullable=False)
    bio = Column(Text)
    avatar_url = Column(Text)

    # Referidos
    referral_code = Column(String(8), unique=True, index=True)
    referred_by = Column(String, ForeignKey("users.id"), nullable=True)
    referral_credits = Column(Numeric(12, 2), default=0, nullable=False)
    lifetime_referral_credits = Column(Numeric(12, 2), default=0, nullable=False)

    # Direcciones de cobro por red
    payout_address_eth = Column(Text)
    payout_address_sol = Column(Text)
    payout_address_bsc = Column(Text)
    payout_address_sui = Column(Text)
    payout_address_cardano = Column(Text)

    creator = relationship("Creator", back_populates="user", uselist=False, cascade="all, delete-orphan")
    referrer = relationship("User", remote_side=[id])

    def __repr__(self):
        return f"<User(handle='{self.handle}', role='{self.role}')>"


class Creator(Base):
    """Perfil de creador (extension 1:1 de User)"""
    __tablename__ = "creators"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    headline = Column(Text)
    category = Column(Text)
    intro_video_url = Column(Text)
    tier = Column(String, default=CreatorTier.BASIC.value, nullable=False)

    approved = Column(Boolean, default=False, nullable=False)
    approved_at = Column(DateTime(timezone=True))
    rating = Column(Float, default=0.0)
    review_count = Column(Integer, default=0)
    priority_score = Column(Integer, default=0)

    user = relationship("User", back_populates="creator")
    services = relationship("Service", back_populates="creator", cascade="all, delete-orphan")
