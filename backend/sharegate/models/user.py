from sqlalchemy import Column, Integer, String, DateTime
from sharegate.db.base_class import Base
from sharegate.utils.time_utils import utcnow

class User(Base):
    """Local mirror of an identity owned by the external auth provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
