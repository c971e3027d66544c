import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.errors import DuplicateEntry, ValidationFailed, translate_integrity_error
from core.utils import register_action_log
from models import User, UserRole
from schemas.users import UserRegister, UserUpdate, PayoutAddressesUpdate, UserResponse
from services.chains import validate_wallet_address
from services.referrals import generate_referral_code, apply_referral_code

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_firebase_token)])

# Columna de la tabla users -> red usada para validar la direccion
PAYOUT_ADDRESS_FIELDS = {
    "eth": ("payout_address_eth", "ethereum"),
    "sol": ("payout_address_sol", "solana"),
    "bsc": ("payout_address_bsc", "bsc"),
    "sui": ("payout_address_sui", "sui"),
    "cardano": ("payout_address_cardano", "cardano"),
}


@router.post("/register", status_code=201, response_model=UserResponse)
def register_profile(
    data: UserRegister,
    request: Request,
    db: Session = Depends(get_db),
    token_data: dict = Depends(verify_firebase_token)
):
    """Creates the profile row for the Firebase account behind the token."""
    uid = token_data.get("uid")

    try:
        if db.query(User.id).filter(User.id == uid).first():
            raise DuplicateEntry("Your profile already exists.", code="PROFILE_ALREADY_EXISTS")

        if db.query(User.id).filter(User.handle == data.handle).first():
            raise DuplicateEntry("This username is already taken. Please choose another.")

        user = User(
            id=uid,
            email=token_data.get("email"),
            handle=data.handle,
            bio=data.bio,
            avatar_url=data.avatar_url,
            role=UserRole.CLIENT.value,
            referral_code=generate_referral_code(db),
        )
        db.add(user)

        if data.referral_code:
            apply_referral_code(db, user, data.referral_code)

        register_action_log(db, uid, "PROFILE_REGISTERED", "POST", "/users/register", {"handle": data.handle}, request)
        db.commit()
        db.refresh(user)
        return user

    except HTTPException as he:
        raise he
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e)
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Error registering profile {uid}: {e}")
        raise HTTPException(status_code=500, detail="error_registering_profile")


@router.get("/me", response_model=UserResponse)
def get_my_profile(actor: ActorContext = Depends(get_current_actor)):
    return actor.user


@router.patch("/me", response_model=UserResponse)
def update_my_profile(
    data: UserUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    user = actor.user
    changes = data.model_dump(exclude_unset=True)

    try:
        new_handle = changes.get("handle")
        if new_handle and new_handle != user.handle:
            taken = db.query(User.id).filter(User.handle == new_handle, User.id != user.id).first()
            if taken:
                raise DuplicateEntry("This username is already taken. Please choose another.")

        for field, value in changes.items():
            setattr(user, field, value)

        db.commit()
        db.refresh(user)
        return user

    except HTTPException as he:
        raise he
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e)


@router.put("/me/payout-addresses", response_model=UserResponse)
def update_payout_addresses(
    data: PayoutAddressesUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    """Every address is validated for its network; an empty string clears it."""
    user = actor.user
    errors = {}

    for key, value in data.model_dump(exclude_unset=True).items():
        column, network = PAYOUT_ADDRESS_FIELDS[key]
        if value is None:
            continue
        if value.strip() == "":
            setattr(user, column, None)
            continue

        check = validate_wallet_address(value, network)
        if not check.is_valid:
            errors[key] = check.error
            continue
        setattr(user, column, check.address)

    if errors:
        db.rollback()
        first = next(iter(errors))
        raise ValidationFailed(f"{first}: {errors[first]}", code="INVALID_WALLET_ADDRESS")

    db.commit()
    db.refresh(user)
    return user
