import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from core.database import get_db
from core.auth import verify_firebase_token, get_current_actor, ActorContext
from core.errors import DuplicateEntry, NotFound, ValidationFailed, translate_integrity_error
from models import CartItem, Service
from schemas.catalog import CartAdd
from services.bookings import create_booking

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_firebase_token)])


@router.get("/")
def get_cart(db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    items = db.query(CartItem).filter(CartItem.user_id == actor.user.id).order_by(CartItem.created_at.asc()).all()
    return {
        "items": [
            {
                "id": i.id,
                "service_id": i.service_id,
                "title": i.service.title,
                "price_usdc": float(i.service.price_usdc),
                "active": i.service.active,
            } for i in items
        ],
        "total_usdc": float(sum(i.service.price_usdc for i in items if i.service.active)),
    }


@router.post("/", status_code=201)
def add_to_cart(data: CartAdd, db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    service = db.query(Service).filter(Service.id == data.service_id, Service.active == True).first()
    if not service:
        raise NotFound("Service not found", code="SERVICE_NOT_FOUND")

    exists = db.query(CartItem.id).filter(
        CartItem.user_id == actor.user.id,
        CartItem.service_id == service.id
    ).first()
    if exists:
        raise DuplicateEntry("This service is already in your cart.", code="ALREADY_IN_CART")

    try:
        item = CartItem(user_id=actor.user.id, service_id=service.id)
        db.add(item)
        db.commit()
        return {"status": "success", "cart_item_id": item.id}
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e)


@router.delete("/{service_id}")
def remove_from_cart(service_id: int, db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    item = db.query(CartItem).filter(
        CartItem.user_id == actor.user.id,
        CartItem.service_id == service_id
    ).first()
    if not item:
        raise NotFound("Item not in cart", code="CART_ITEM_NOT_FOUND")
    db.delete(item)
    db.commit()
    return {"status": "success", "message": "Item removed"}


@router.post("/checkout", status_code=201)
def checkout_cart(db: Session = Depends(get_db), actor: ActorContext = Depends(get_current_actor)):
    """One draft booking per cart item; each is paid separately."""
    items = db.query(CartItem).filter(CartItem.user_id == actor.user.id).all()
    if not items:
        raise ValidationFailed("Your cart is empty.", code="CART_EMPTY")

    try:
        bookings = []
        for item in items:
            bookings.append(create_booking(db, actor.user, item.service))
            db.delete(item)

        db.commit()
        logger.info(f"🛒 Checkout by {actor.user.id}: {len(bookings)} bookings")
        return {
            "status": "success",
            "bookings": [
                {"id": b.id, "service_id": b.service_id, "usdc_amount": float(b.usdc_amount), "status": b.status}
                for b in bookings
            ],
        }
    except HTTPException as he:
        db.rollback()
        raise he
    except Exception as e:
        db.rollback()
        logger.exception(f"🚨 Checkout failed for {actor.user.id}: {e}")
        raise HTTPException(status_code=500, detail="error_checkout")
