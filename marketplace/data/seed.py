# marketplace/data/seed.py
from decimal import Decimal

from sqlalchemy.orm import Session

from marketplace.data.database import SessionLocal
from marketplace.data.models import CartModel, ProductModel, UserModel, VendorModel


def seed(db: Session | None = None) -> bool:
    """Dane deweloperskie: klient, zatwierdzony vendor i kilka produktow."""
    own_session = db is None
    if own_session:
        db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(UserModel).first():
            return False

        customer = UserModel(email="customer@example.com", name="Demo Customer", role="customer")
        seller = UserModel(email="vendor@example.com", name="Demo Vendor", role="vendor")
        db.add_all([customer, seller])
        db.flush()

        db.add_all([CartModel(user_id=customer.id), CartModel(user_id=seller.id)])

        vendor = VendorModel(user_id=seller.id, business_name="Demo Store", is_approved=True)
        db.add(vendor)
        db.flush()

        db.add_all(
            [
                ProductModel(vendor_id=vendor.id, name="Keyboard", price=Decimal("199.99"), stock_quantity=25),
                ProductModel(vendor_id=vendor.id, name="Mouse", price=Decimal("49.50"), stock_quantity=40),
                ProductModel(vendor_id=None, name="Gift Card", price=Decimal("100.00"), stock_quantity=100),
            ]
        )
        db.commit()
        return True
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    seed()
