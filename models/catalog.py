from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, Numeric, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from core.database import Base, BigId


class Service(Base):
    """Servicio publicado por un creador"""
    __tablename__ = "services"

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    creator_id = Column(BigId, ForeignKey("creators.id", ondelete="CASCADE"), index=True, nullable=False)

    title = Column(Text, nullable=False)
    description = Column(Text)
    category = Column(Text)
    price_usdc = Column(Numeric(12, 2), nullable=False)
    delivery_days = Column(Integer, nullable=False)
    # Solo se desactiva: las reservas siguen apuntando a la fila
    active = Column(Boolean, default=True, nullable=False)

    creator = relationship("Creator", back_populates="services")


class CartItem(Base):
    """Carrito de compras (un servicio una sola vez por usuario)"""
    __tablename__ = "shopping_cart"
    __table_args__ = (
        UniqueConstraint("user_id", "service_id", name="uq_shopping_cart_user_service"),
    )

    id = Column(BigId, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    service_id = Column(BigId, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)

    service = relationship("Service")
