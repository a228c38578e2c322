from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship

from marketplace.data.database import Base
from marketplace.data.models._common import utcnow


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), nullable=False, default="pending")  # pending, processing, shipped, delivered, cancelled
    payment_status = Column(String(50), nullable=False, default="unpaid")  # unpaid, paid, refunded

    # ustawiane przy inicjacji platnosci
    payment_gateway = Column(String(50), nullable=True)  # esewa, khalti, cod
    payment_intent_id = Column(String(255), nullable=True)
    # ustawiane przy weryfikacji
    transaction_id = Column(String(255), nullable=True, unique=True)

    shipping_address = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    history = relationship(
        "OrderStatusHistoryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistoryModel.id",
    )
