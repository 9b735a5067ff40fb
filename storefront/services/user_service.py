from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel, AddressModel
from storefront.domain.errors import AccountExists, ValidationError
from storefront.repos.user_repo import UserRepo
from storefront.utils.security import hash_password, random_password, create_access_token
from storefront.utils.settings import DEFAULT_COUNTRY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    """Account side effects of checkout. Runs inside the caller's transaction."""

    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def get_user(self, user_id: int) -> UserModel | None:
        return self.repo.get_user(user_id)

    def create_guest_account(self, email: str, name: str) -> tuple[UserModel, str]:
        """
        Creates a customer with a random password for a guest who asked for
        an account at checkout. Returns the user and an access token.
        """
        if self.repo.get_by_email(email):
            raise AccountExists()

        user = self.repo.create_user(
            UserModel(
                email=email,
                name=name,
                password_hash=hash_password(random_password()),
                role="customer",
                loyalty_points=0,
            )
        )
        logger.info(f"Created account {user.id} during guest checkout")
        return user, create_access_token(user.id, user.role)

    def save_default_address(self, user_id: int, shipping) -> AddressModel | None:
        """Stores the shipping address as default when the user has none yet."""
        if self.repo.address_count(user_id) > 0:
            return None

        return self.repo.add_address(
            AddressModel(
                user_id=user_id,
                name=shipping.name,
                address_line1=shipping.address,
                city=shipping.city,
                state=shipping.state,
                postal_code=shipping.postal_code,
                country=shipping.country or DEFAULT_COUNTRY,
                phone=shipping.phone,
                is_default=True,
            )
        )

    def apply_loyalty(self, user: UserModel, used: int, earned: int):
        balance = user.loyalty_points or 0
        if used > balance:
            raise ValidationError(
                "Not enough loyalty points",
                available=balance,
                requested=used,
            )
        user.loyalty_points = balance - used + earned
