from typing import Optional
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sharegate.crud.base import CRUDBase
from sharegate.models.user import User


class CRUDUser(CRUDBase[User, BaseModel, BaseModel]):
    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    def create_mirror(self, db: Session, *, email: str, display_name: Optional[str] = None) -> User:
        """Record an identity the auth provider already created."""
        db_obj = User(email=email, display_name=display_name)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

user = CRUDUser(User)
