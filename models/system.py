from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, ForeignKey, func
from core.database import Base, BigId, JsonData

class AuditLog(Base):
    """Registro de acciones administrativas (caja negra de la API)."""
    __tablename__ = "audit_logs"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    actor_id = Column(String, index=True)

    action = Column(String)
    method = Column(String)
    path = Column(Text)
    payload = Column(JsonData)
    ip = Column(String)
    status_code = Column(Integer)

class Notification(Base):
    """Notificaciones dentro de la app."""
    __tablename__ = "notifications"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    type = Column(String, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)

    booking_id = Column(BigId, nullable=True)
    payment_id = Column(BigId, nullable=True)
    dispute_id = Column(BigId, nullable=True)
