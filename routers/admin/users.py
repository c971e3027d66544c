import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from firebase_admin import auth
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import require_admin, ActorContext
from core.errors import DuplicateEntry, NotFound, ValidationFailed
from core.utils import register_action_log, utcnow
from models import User, Creator, UserRole
from schemas.admin.users import AdminCreateUser, RoleUpdate, BanUpdate
from services.notifications import notify
from services.referrals import generate_referral_code

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/users",
    tags=["Admin Users"],
    dependencies=[Depends(require_admin)]
)


def _user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    return user


def user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "handle": user.handle,
        "role": user.role,
        "verified": user.verified,
        "banned": user.banned,
        "is_creator": user.creator is not None,
        "creator_approved": user.creator.approved if user.creator else None,
        "referral_credits": float(user.referral_credits or 0),
    }


@router.post("/", status_code=201)
def create_user_account(
    data: AdminCreateUser,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    """Creates the Firebase login and the profile row in one step."""
    if db.query(User.id).filter(User.email == data.email).first():
        raise DuplicateEntry("An account with this email already exists.")
    if db.query(User.id).filter(User.handle == data.handle).first():
        raise DuplicateEntry("This username is already taken. Please choose another.")

    try:
        fb_user = auth.create_user(email=data.email, password=data.password, display_name=data.handle)
    except auth.EmailAlreadyExistsError:
        raise DuplicateEntry("An account with this email already exists.")
    except ValueError as e:
        raise ValidationFailed(str(e))

    try:
        user = User(
            id=fb_user.uid,
            email=data.email,
            handle=data.handle,
            role=data.role,
            referral_code=generate_referral_code(db),
        )
        db.add(user)
        register_action_log(db, actor.user.id, "ADMIN_USER_CREATED", "POST", "/admin/users",
                            {"email": data.email, "handle": data.handle, "role": data.role}, request)
        db.commit()

    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Profile insert failed for new account {data.email}: {e}")
        try:
            auth.delete_user(fb_user.uid)
        except Exception as fe:
            logger.warning(f"⚠️ FIREBASE_CLEANUP_ERROR for {fb_user.uid}: {fe}")
        raise HTTPException(status_code=500, detail="error_creating_user")

    return {"id": user.id, "email": user.email, "handle": user.handle, "role": user.role}


@router.get("/")
def list_users(search: str = None, role: str = None, limit: int = 100, db: Session = Depends(get_db)):
    query = db.query(User)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(User.handle.ilike(term), User.email.ilike(term)))
    if role:
        query = query.filter(User.role == role)
    return [user_summary(u) for u in query.order_by(User.created_at.desc()).limit(min(limit, 500)).all()]


@router.patch("/{user_id}/role")
def change_role(
    user_id: str,
    data: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    user = _user_or_404(db, user_id)
    if user.id == actor.user.id and data.role != UserRole.ADMIN.value:
        raise ValidationFailed("You cannot remove your own admin role.")

    previous = user.role
    user.role = data.role
    register_action_log(db, actor.user.id, "USER_ROLE_CHANGED", "PATCH", f"/admin/users/{user_id}/role",
                        {"from": previous, "to": data.role}, request)
    db.commit()
    return user_summary(user)


@router.post("/{user_id}/verify")
def verify_user(user_id: str, request: Request, db: Session = Depends(get_db), actor: ActorContext = Depends(require_admin)):
    user = _user_or_404(db, user_id)
    user.verified = True
    register_action_log(db, actor.user.id, "USER_VERIFIED", "POST", f"/admin/users/{user_id}/verify", None, request)
    db.commit()
    return user_summary(user)


@router.post("/{user_id}/ban")
def set_ban(
    user_id: str,
    data: BanUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    user = _user_or_404(db, user_id)
    if user.id == actor.user.id:
        raise ValidationFailed("You cannot ban yourself.")

    user.banned = data.banned
    register_action_log(db, actor.user.id, "USER_BANNED" if data.banned else "USER_UNBANNED", "POST",
                        f"/admin/users/{user_id}/ban", {"reason": data.reason}, request)
    db.commit()
    return user_summary(user)


# --- CREADORES ---

@router.get("/creators/pending")
def pending_creators(db: Session = Depends(get_db)):
    creators = db.query(Creator).filter(Creator.approved == False).order_by(Creator.created_at.asc()).all()
    return [
        {
            "id": c.id,
            "user_id": c.user_id,
            "handle": c.user.handle,
            "headline": c.headline,
            "category": c.category,
            "intro_video_url": c.intro_video_url,
        } for c in creators
    ]


@router.post("/creators/{creator_id}/approve")
def approve_creator(
    creator_id: int,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    creator = db.query(Creator).filter(Creator.id == creator_id).first()
    if not creator:
        raise NotFound("Creator not found", code="CREATOR_NOT_FOUND")

    creator.approved = True
    creator.approved_at = utcnow()
    if creator.user.role == UserRole.CLIENT.value:
        creator.user.role = UserRole.CREATOR.value

    notify(db, creator.user_id, "creator_approved", "You're approved!",
           "Your creator profile is live. You can now publish services.")
    register_action_log(db, actor.user.id, "CREATOR_APPROVED", "POST", f"/admin/users/creators/{creator_id}/approve",
                        {"user_id": creator.user_id}, request)
    db.commit()
    return {"status": "success", "creator_id": creator.id, "user_id": creator.user_id}
