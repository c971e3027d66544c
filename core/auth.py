import os
import logging
from enum import Enum
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth
from fastapi import HTTPException, Depends, status, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials, APIKeyHeader
from sqlalchemy.orm import Session
from dotenv import load_dotenv

from core.database import get_db
from core.errors import NotFound, PermissionDenied
from models import User

load_dotenv()

logger = logging.getLogger(__name__)

# --- FIREBASE CONFIGURATION ---
firebase_config = {
    "type": "service_account",
    "project_id": os.getenv("FIREBASE_PROJECT_ID"),
    "private_key_id": os.getenv("FIREBASE_PRIVATE_KEY_ID"),
    "private_key": os.getenv("FIREBASE_PRIVATE_KEY").replace('\\n', '\n') if os.getenv("FIREBASE_PRIVATE_KEY") else None,
    "client_email": os.getenv("FIREBASE_CLIENT_EMAIL"),
    "token_uri": "https://oauth2.googleapis.com/token",
}

if not firebase_admin._apps and os.getenv("FIREBASE_PRIVATE_KEY"):
    try:
        cred = credentials.Certificate(firebase_config)
        firebase_admin.initialize_app(cred)
    except Exception as e:
        logger.error(f"❌ Error initializing Firebase: {e}")

# --- SECURITY SCHEMES DEFINITION ---

# 1. JWT para usuarios finales (web app)
security_bearer = HTTPBearer()

# 2. API Key para jobs programados (cron / n8n)
admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


# --- VERIFICATION FUNCTIONS (DEPENDENCIES) ---

def verify_firebase_token(auth_cred: HTTPAuthorizationCredentials = Depends(security_bearer)):
    """Validates the Firebase JWT token and returns the decoded payload."""
    token = auth_cred.credentials
    try:
        decoded_token = auth.verify_id_token(token)
        return decoded_token
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_admin_key(api_key: str = Security(admin_key_header)):
    """Validates the API key used by scheduled jobs."""
    master_key = os.getenv("ADMIN_API_KEY")
    if not master_key or api_key != master_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access Denied: Invalid Administrative API Key"
        )
    return api_key


# --- ACTOR CONTEXT (request scoped) ---

class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"


class ActorContext:
    """
    Who is calling and what they may do, built once per request.

    The state only moves forward: unauthenticated -> loading -> authenticated.
    """

    def __init__(self):
        self.state = AuthState.UNAUTHENTICATED
        self.uid: Optional[str] = None
        self.email: Optional[str] = None
        self.user: Optional[User] = None

    def begin_loading(self, token_data: dict):
        if self.state != AuthState.UNAUTHENTICATED:
            raise RuntimeError(f"cannot start loading from state {self.state.value}")
        self.uid = token_data.get("uid")
        self.email = token_data.get("email")
        self.state = AuthState.LOADING

    def authenticate(self, user: User):
        if self.state != AuthState.LOADING:
            raise RuntimeError(f"cannot authenticate from state {self.state.value}")
        if user.id != self.uid:
            raise RuntimeError("profile does not belong to the verified token")
        self.user = user
        self.state = AuthState.AUTHENTICATED

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    def has_role(self, *roles: str) -> bool:
        return self.is_authenticated and self.role in roles


def get_current_actor(
    token_data: dict = Depends(verify_firebase_token),
    db: Session = Depends(get_db),
) -> ActorContext:
    actor = ActorContext()
    actor.begin_loading(token_data)

    user = db.query(User).filter(User.id == actor.uid).first()
    if not user:
        raise NotFound("Complete your profile registration first.", code="PROFILE_NOT_FOUND")
    if user.banned:
        raise PermissionDenied("This account has been suspended.", code="ACCOUNT_BANNED")

    actor.authenticate(user)
    return actor


def require_role(*roles: str):
    """Dependency factory: the caller must hold one of `roles`."""

    def checker(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
        if not actor.has_role(*roles):
            raise PermissionDenied("You do not have permission to perform this action.", code="PERMISSION_DENIED")
        return actor

    return checker


require_admin = require_role("admin")
