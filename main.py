import logging
import time as time_lib

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import CORS_ORIGINS
from core.database import SessionLocal, Base, engine
from core.errors import MarketplaceError
from core.log_config import setup_logging
from services.wallets import seed_default_wallets

from routers import users, creators, catalog, cart, bookings, payments, referrals, notifications, wallets, system
from routers.admin import payments as admin_payments
from routers.admin import wallets as admin_wallets
from routers.admin import users as admin_users
from routers.admin import referrals as admin_referrals
from routers.admin import bookings as admin_bookings
from routers.admin import disputes as admin_disputes
from routers.admin import notification as admin_notification

setup_logging()
logger = logging.getLogger("leveledup")


def prepare_database():
    """Creates missing tables and seeds the default escrow wallets."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_default_wallets(db)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Error seeding wallets: {e}")
    finally:
        db.close()


# --- 1. MIDDLEWARES ---

class TimeProcessMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time_lib.perf_counter()
        response = await call_next(request)
        process_time = (time_lib.perf_counter() - start_time) * 1000

        logger.info(f"⏱️  {request.method} {request.url.path} | {process_time:.2f}ms | Status: {response.status_code}")
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        return response


# --- 2. INSTANCIA DE APP ---
app = FastAPI(
    title="LEVELED UP API",
    description="Creator marketplace with crypto escrow, referrals and admin review",
    version="0.1.0"
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Logs which field failed and what the client sent."""
    logger.warning(f"❌ VALIDATION ERROR on {request.url.path}: {exc.errors()}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "title": "Validation Error",
            "message": "Some fields are invalid.",
            "detail": exc.errors(),
        },
    )


# --- 3. EVENTOS DE SISTEMA ---
@app.on_event("startup")
async def startup_event():
    prepare_database()


# El de tiempo envuelve a todos para medir el ciclo completo
app.add_middleware(TimeProcessMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- 4. ROUTERS ---
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(creators.router, prefix="/creators", tags=["Creators"])
app.include_router(catalog.router, prefix="/services", tags=["Services"])
app.include_router(cart.router, prefix="/cart", tags=["Cart"])

app.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(wallets.router, prefix="/wallets", tags=["Payments"])

app.include_router(referrals.router, prefix="/referrals", tags=["Referrals"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

app.include_router(system.router)

# --- ADMIN SECTION ---
# Los routers admin ya traen su prefix y la dependencia require_admin
app.include_router(admin_payments.router)
app.include_router(admin_wallets.router)
app.include_router(admin_users.router)
app.include_router(admin_referrals.router)
app.include_router(admin_bookings.router)
app.include_router(admin_disputes.router)
app.include_router(admin_notification.router)


@app.get("/", tags=["System"])
def health_check():
    return {
        "status": "online",
        "version": app.version,
        "server_time": "UTC",
    }
