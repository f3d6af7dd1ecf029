from sqlalchemy import Column, Integer, String, Boolean, BigInteger, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sharegate.db.base_class import Base
from sharegate.utils.time_utils import utcnow

class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    content_type = Column(String(255), nullable=False)
    # Object key inside the blob store bucket
    storage_path = Column(String(1024), nullable=False)
    is_encrypted = Column(Boolean, default=True, nullable=False)

    # Time fields
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User")
    share_links = relationship(
        "ShareLink",
        back_populates="file",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ShareLink.id",
    )
