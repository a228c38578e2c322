from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import relationship

from marketplace.data.database import Base
from marketplace.data.models._common import utcnow


class OrderItemModel(Base):
    """
    Snapshot pozycji zamowienia - po utworzeniu nie jest modyfikowany.
    price_at_purchase nigdy nie jest przeliczany z aktualnej ceny produktu.
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    # zdenormalizowane przy tworzeniu, do zapytan per vendor
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)

    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    order = relationship("OrderModel", back_populates="items")
    product = relationship("ProductModel")
