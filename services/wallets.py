import logging
from typing import List, Optional, Type

from sqlalchemy.orm import Session

from core.config import DEFAULT_PLATFORM_WALLETS
from core.errors import ValidationFailed, NotFound, DuplicateEntry
from models import PlatformWallet, SubscriptionWallet
from services.chains import normalize_network, validate_wallet_address

logger = logging.getLogger(__name__)

WALLET_KINDS = {
    "platform": PlatformWallet,
    "subscription": SubscriptionWallet,
}


def wallet_model(kind: str):
    model = WALLET_KINDS.get(kind)
    if model is None:
        raise ValidationFailed(f"Unknown wallet kind: {kind}")
    return model


def _require_network(network: str) -> str:
    network_name = normalize_network(network)
    if network_name is None:
        raise ValidationFailed(f"Unsupported network: {network}", code="UNSUPPORTED_NETWORK")
    return network_name


def _checked_address(address: str, network_name: str) -> str:
    check = validate_wallet_address(address, network_name)
    if not check.is_valid:
        raise ValidationFailed(check.error, code="INVALID_WALLET_ADDRESS")
    return check.address


def active_wallet(db: Session, model: Type, network: str):
    """Destination wallet for `network`, or None when missing/disabled."""
    return db.query(model).filter(
        model.network == normalize_network(network),
        model.active == True
    ).first()


def list_wallets(db: Session, model: Type, only_active: bool = True) -> List:
    query = db.query(model)
    if only_active:
        query = query.filter(model.active == True)
    return query.order_by(model.network.asc()).all()


def seed_default_wallets(db: Session) -> int:
    """Inserts the default address for every network that has no row yet. Caller commits."""
    created = 0
    for model in (PlatformWallet, SubscriptionWallet):
        existing = {row[0] for row in db.query(model.network).all()}
        for network, (name, address) in DEFAULT_PLATFORM_WALLETS.items():
            if network in existing:
                continue
            db.add(model(network=network, name=name, wallet_address=address, active=True))
            created += 1
    if created:
        logger.info(f"💼 Seeded {created} default wallets")
    return created


def create_wallet(db: Session, model: Type, network: str, name: str, address: str,
                  explorer_url: str = None, admin_id: str = None):
    network_name = _require_network(network)
    if db.query(model.id).filter(model.network == network_name).first():
        raise DuplicateEntry(f"A wallet for {network_name} already exists.", code="WALLET_ALREADY_EXISTS")

    wallet = model(
        network=network_name,
        name=name,
        wallet_address=_checked_address(address, network_name),
        explorer_url=explorer_url,
        active=True,
        updated_by=admin_id,
    )
    db.add(wallet)
    return wallet


def update_wallet(db: Session, model: Type, network: str, address: Optional[str] = None,
                  active: Optional[bool] = None, admin_id: str = None):
    network_name = _require_network(network)
    wallet = db.query(model).filter(model.network == network_name).with_for_update().first()
    if not wallet:
        raise NotFound(f"No wallet configured for {network_name}", code="WALLET_NOT_FOUND")

    if address is not None:
        wallet.wallet_address = _checked_address(address, network_name)
    if active is not None:
        wallet.active = active
    wallet.updated_by = admin_id
    return wallet


def wallet_to_dict(wallet) -> dict:
    return {
        "id": wallet.id,
        "network": wallet.network,
        "name": wallet.name,
        "wallet_address": wallet.wallet_address,
        "explorer_url": wallet.explorer_url,
        "active": wallet.active,
    }
