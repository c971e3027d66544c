"""
Shared fixtures for the API and service tests.

The app runs against an in-memory SQLite database and Firebase token checks are
replaced by a header carrying the caller's uid (X-Test-Uid).
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ.pop("FIREBASE_PRIVATE_KEY", None)

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from core.auth import verify_firebase_token
from core.database import Base, engine, SessionLocal, get_db
from main import app
from models import User, Creator, Service, Booking, UserRole
from services.payments import payment_limiter
from services.referrals import generate_referral_code
from services.wallets import seed_default_wallets

ADMIN_KEY = "test-admin-key"

ETH_TX = "0x" + "a" * 64
ETH_TX_2 = "0x" + "b" * 64
SOLANA_TX = "5" * 88


def fake_firebase_token(request: Request):
    uid = request.headers.get("X-Test-Uid")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid or expired Firebase token")
    return {"uid": uid, "email": f"{uid}@leveledup.io"}


def as_user(uid: str) -> dict:
    return {"X-Test-Uid": uid}


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    payment_limiter.reset()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[verify_firebase_token] = fake_firebase_token
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def wallets(db):
    seed_default_wallets(db)
    db.commit()


def make_user(db, uid, role=UserRole.CLIENT.value, referred_by=None, credits="0"):
    user = User(
        id=uid,
        email=f"{uid}@leveledup.io",
        handle=uid,
        role=role,
        referral_code=generate_referral_code(db),
        referred_by=referred_by,
        referral_credits=Decimal(credits),
        lifetime_referral_credits=Decimal(credits),
    )
    db.add(user)
    db.commit()
    return user


def make_creator(db, user, tier="basic", approved=True):
    creator = Creator(user_id=user.id, headline="Web3 mentor", category="coaching", tier=tier, approved=approved)
    db.add(creator)
    db.commit()
    return creator


def make_service(db, creator, price="100.00", active=True):
    service = Service(
        creator_id=creator.id, title="Portfolio review", price_usdc=Decimal(price), delivery_days=3, active=active
    )
    db.add(service)
    db.commit()
    return service


def make_booking(db, client_user, service, status="draft", delivered_at=None):
    booking = Booking(
        client_id=client_user.id,
        creator_id=service.creator.user_id,
        service_id=service.id,
        status=status,
        usdc_amount=service.price_usdc,
        deliverable_urls=[],
        delivered_at=delivered_at,
    )
    db.add(booking)
    db.commit()
    return booking


@pytest.fixture
def marketplace(db):
    """An admin, a client and an approved creator with one 100 USDC service."""
    admin = make_user(db, "admin1", role=UserRole.ADMIN.value)
    client_user = make_user(db, "client1")
    creator_user = make_user(db, "creator1", role=UserRole.CREATOR.value)
    creator = make_creator(db, creator_user)
    service = make_service(db, creator)
    return {
        "admin": admin,
        "client": client_user,
        "creator_user": creator_user,
        "creator": creator,
        "service": service,
    }


def days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)
