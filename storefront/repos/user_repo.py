from sqlalchemy import select, func
from sqlalchemy.orm import Session

from storefront.data.models.user import UserModel, AddressModel


class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_by_email(self, email: str) -> UserModel | None:
        return self.db.execute(select(UserModel).where(UserModel.email == email)).scalar_one_or_none()

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.flush()
        return user

    def address_count(self, user_id: int) -> int:
        return self.db.execute(
            select(func.count(AddressModel.id)).where(AddressModel.user_id == user_id)
        ).scalar_one()

    def add_address(self, address: AddressModel) -> AddressModel:
        self.db.add(address)
        self.db.flush()
        return address
