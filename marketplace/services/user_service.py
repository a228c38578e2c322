from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.data.models.cart import CartModel
from marketplace.data.models.user import UserModel
from marketplace.domain.errors import UserNotFound, ValidationError
from marketplace.domain.schemas import UserCreate, UserRead
from marketplace.repos.cart_repo import CartRepo
from marketplace.repos.user_repo import UserRepo
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)
        self.carts = CartRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        # koszyk powstaje razem z userem, w jednej transakcji
        if self.repo.get_user_by_email(payload.email):
            raise ValidationError("Email already registered", details={"email": payload.email})

        try:
            user = self.repo.create_user(
                UserModel(email=payload.email, name=payload.name, role=payload.role.value)
            )
            self.carts.create_cart(CartModel(user_id=user.id))
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            raise ValidationError("Email already registered", details={"email": payload.email}) from e

        logger.info(f"Utworzono uzytkownika {user.id} z pustym koszykiem")
        return UserRead.model_validate(user)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise UserNotFound(user_id)
        return UserRead.model_validate(user)
