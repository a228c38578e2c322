from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.data.models.user import UserModel
from marketplace.data.models.vendor import VendorModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_user_by_email(self, email: str) -> UserModel | None:
        return self.db.execute(
            select(UserModel).where(UserModel.email == email)
        ).scalar_one_or_none()

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.flush()
        return user

    def get_vendor_by_user(self, user_id: int) -> VendorModel | None:
        return self.db.execute(
            select(VendorModel).where(VendorModel.user_id == user_id)
        ).scalar_one_or_none()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
