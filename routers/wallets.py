from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from services.chains import currency_for
from services.wallets import wallet_model, list_wallets, wallet_to_dict

# Publico: la pantalla de instrucciones de pago lo consulta antes del login
router = APIRouter()


@router.get("/{kind}")
def list_active_wallets(kind: str, db: Session = Depends(get_db)):
    """Active destination wallets (`platform` for bookings, `subscription` for tiers)."""
    model = wallet_model(kind)
    return [
        {**wallet_to_dict(w), "currency": currency_for(w.network)}
        for w in list_wallets(db, model, only_active=True)
    ]
