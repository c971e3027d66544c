import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import get_current_actor, ActorContext
from core.errors import DuplicateEntry, NotFound
from core.utils import register_action_log
from models import Creator, CreatorTier, Review, User
from schemas.users import CreatorApply
from services.notifications import notify_admins
from services.reviews import review_to_dict

logger = logging.getLogger(__name__)

# Listado publico: sin dependencia global de auth
router = APIRouter()


def creator_to_dict(creator: Creator, include_services: bool = False) -> dict:
    data = {
        "id": creator.id,
        "user_id": creator.user_id,
        "handle": creator.user.handle if creator.user else None,
        "avatar_url": creator.user.avatar_url if creator.user else None,
        "verified": creator.user.verified if creator.user else False,
        "headline": creator.headline,
        "category": creator.category,
        "intro_video_url": creator.intro_video_url,
        "tier": creator.tier,
        "rating": creator.rating or 0.0,
        "review_count": creator.review_count or 0,
    }
    if include_services:
        data["services"] = [
            {
                "id": s.id,
                "title": s.title,
                "price_usdc": float(s.price_usdc),
                "delivery_days": s.delivery_days,
            }
            for s in creator.services if s.active
        ]
    return data


@router.get("/")
def list_creators(category: str = None, limit: int = 50, db: Session = Depends(get_db)):
    """Approved creators, best placed first."""
    query = db.query(Creator).join(User, Creator.user_id == User.id).filter(
        Creator.approved == True,
        User.banned == False
    )
    if category:
        query = query.filter(Creator.category == category)

    creators = query.order_by(
        Creator.priority_score.desc(),
        Creator.rating.desc()
    ).limit(min(limit, 100)).all()

    return [creator_to_dict(c) for c in creators]


@router.get("/{creator_id}")
def get_creator(creator_id: int, db: Session = Depends(get_db)):
    creator = db.query(Creator).filter(Creator.id == creator_id, Creator.approved == True).first()
    if not creator:
        raise NotFound("Creator not found", code="CREATOR_NOT_FOUND")
    return creator_to_dict(creator, include_services=True)


@router.get("/{creator_id}/reviews")
def list_creator_reviews(creator_id: int, limit: int = 50, db: Session = Depends(get_db)):
    creator = db.query(Creator).filter(Creator.id == creator_id, Creator.approved == True).first()
    if not creator:
        raise NotFound("Creator not found", code="CREATOR_NOT_FOUND")

    reviews = db.query(Review).filter(Review.reviewee_id == creator.user_id).order_by(
        Review.created_at.desc(), Review.id.desc()
    ).limit(min(limit, 100)).all()
    return {
        "rating": creator.rating or 0.0,
        "review_count": creator.review_count or 0,
        "reviews": [review_to_dict(r) for r in reviews],
    }


@router.post("/apply", status_code=201)
def apply_as_creator(
    data: CreatorApply,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    user = actor.user
    try:
        if user.creator:
            raise DuplicateEntry("You already have a creator profile.", code="CREATOR_ALREADY_EXISTS")

        creator = Creator(
            user_id=user.id,
            headline=data.headline,
            category=data.category,
            intro_video_url=data.intro_video_url,
            tier=CreatorTier.BASIC.value,
            approved=False,
        )
        db.add(creator)
        if data.bio:
            user.bio = data.bio

        db.flush()
        notify_admins(db, "creator_application", "New creator application",
                      f"@{user.handle} applied as a creator ({data.category}).")
        register_action_log(db, user.id, "CREATOR_APPLIED", "POST", "/creators/apply", data.model_dump(), request)
        db.commit()

        return {"status": "success", "creator_id": creator.id, "approved": False}

    except HTTPException as he:
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Error on creator application for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="error_creating_creator_profile")
