import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.config import CREATOR_TIERS
from core.database import get_db
from core.auth import get_current_actor, ActorContext
from core.errors import NotFound, PermissionDenied, ValidationFailed
from models import Creator, Service
from schemas.catalog import ServiceCreate, ServiceUpdate, ServiceResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _own_creator(actor: ActorContext) -> Creator:
    creator = actor.user.creator
    if not creator:
        raise PermissionDenied("You need a creator profile to manage services.", code="CREATOR_PROFILE_REQUIRED")
    if not creator.approved:
        raise PermissionDenied("Your creator profile is pending approval.", code="CREATOR_NOT_APPROVED")
    return creator


def check_service_limit(db: Session, creator: Creator):
    limit = CREATOR_TIERS.get(creator.tier, CREATOR_TIERS["basic"])["max_services"]
    if limit is None:
        return
    active_count = db.query(Service).filter(
        Service.creator_id == creator.id,
        Service.active == True
    ).count()
    if active_count >= limit:
        raise ValidationFailed(
            f"Your {creator.tier} plan allows {limit} active services. Upgrade to add more.",
            code="SERVICE_LIMIT_REACHED"
        )


@router.get("/", response_model=list[ServiceResponse])
def list_services(category: str = None, creator_id: int = None, db: Session = Depends(get_db)):
    query = db.query(Service).join(Creator, Service.creator_id == Creator.id).filter(
        Service.active == True,
        Creator.approved == True
    )
    if category:
        query = query.filter(Service.category == category)
    if creator_id:
        query = query.filter(Service.creator_id == creator_id)
    return query.order_by(Service.created_at.desc()).all()


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: int, db: Session = Depends(get_db)):
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise NotFound("Service not found", code="SERVICE_NOT_FOUND")
    return service


@router.post("/", status_code=201, response_model=ServiceResponse)
def create_service(
    data: ServiceCreate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    creator = _own_creator(actor)
    try:
        check_service_limit(db, creator)

        service = Service(creator_id=creator.id, active=True, **data.model_dump())
        db.add(service)
        db.commit()
        db.refresh(service)
        logger.info(f"🛍️ Service {service.id} created by creator {creator.id}")
        return service

    except HTTPException as he:
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Error creating service: {e}")
        raise HTTPException(status_code=500, detail="error_creating_service")


@router.patch("/{service_id}", response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: ServiceUpdate,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_current_actor)
):
    creator = _own_creator(actor)
    service = db.query(Service).filter(Service.id == service_id, Service.creator_id == creator.id).first()
    if not service:
        raise NotFound("Service not found", code="SERVICE_NOT_FOUND")

    changes = data.model_dump(exclude_unset=True)
    if changes.get("active") and not service.active:
        check_service_limit(db, creator)

    for field, value in changes.items():
        setattr(service, field, value)

    db.commit()
    db.refresh(service)
    return service
