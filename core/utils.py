import logging
from datetime import datetime, timezone
from typing import Optional

import pytz
from fastapi import Request
from sqlalchemy.orm import Session

from core.config import DEFAULT_TIMEZONE
from models import AuditLog

logger = logging.getLogger(__name__)


def client_ip_from(request: Optional[Request]) -> str:
    if not request:
        return "0.0.0.0"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "0.0.0.0"


def register_action_log(
    db: Session,
    actor_id: str,
    action: str,
    method: str,
    path: str,
    payload: dict = None,
    request: Request = None,
    status_code: int = 200
):
    """
    Adds an audit_logs row to the current transaction.

    The caller commits, so the log lands atomically with the change it describes.
    """
    new_log = AuditLog(
        actor_id=actor_id,
        action=action,
        method=method,
        path=path,
        payload=payload if payload else {},
        ip=client_ip_from(request),
        status_code=status_code
    )
    db.add(new_log)
    logger.info(f"📝 {action} by {actor_id} ({method} {path})")
    return new_log


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def resolve_timezone(tz_name: Optional[str]):
    try:
        return pytz.timezone(tz_name or DEFAULT_TIMEZONE)
    except Exception:
        return pytz.UTC


def format_local(dt: Optional[datetime], local_tz=None) -> Optional[str]:
    if not dt:
        return None
    local_tz = local_tz or pytz.UTC
    return as_utc(dt).astimezone(local_tz).isoformat()
