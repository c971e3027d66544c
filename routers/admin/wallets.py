import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from core.database import get_db
from core.auth import require_admin, ActorContext
from core.utils import register_action_log
from schemas.admin.finance import WalletCreate, WalletUpdate
from services.wallets import wallet_model, list_wallets, create_wallet, update_wallet, wallet_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/wallets",
    tags=["Admin Wallets"],
    dependencies=[Depends(require_admin)]
)


@router.get("/{kind}")
def list_all_wallets(kind: str, db: Session = Depends(get_db)):
    return [wallet_to_dict(w) for w in list_wallets(db, wallet_model(kind), only_active=False)]


@router.post("/{kind}", status_code=201)
def add_wallet(
    kind: str,
    data: WalletCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    model = wallet_model(kind)
    wallet = create_wallet(db, model, data.network, data.name, data.wallet_address, data.explorer_url, actor.user.id)
    register_action_log(db, actor.user.id, "WALLET_CREATED", "POST", f"/admin/wallets/{kind}", data.model_dump(), request)
    db.commit()
    db.refresh(wallet)
    return wallet_to_dict(wallet)


@router.patch("/{kind}/{network}")
def edit_wallet(
    kind: str,
    network: str,
    data: WalletUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(require_admin)
):
    """Address changes are validated against the network's address family."""
    model = wallet_model(kind)
    try:
        wallet = update_wallet(db, model, network, data.wallet_address, data.active, actor.user.id)
        register_action_log(db, actor.user.id, "WALLET_UPDATED", "PATCH", f"/admin/wallets/{kind}/{network}",
                            data.model_dump(exclude_unset=True), request)
        db.commit()
        db.refresh(wallet)
        return wallet_to_dict(wallet)
    except HTTPException as he:
        db.rollback()
        raise he
