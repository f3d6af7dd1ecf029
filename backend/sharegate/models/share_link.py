from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sharegate.db.base_class import Base
from sharegate.utils.time_utils import utcnow

class ShareLink(Base):
    __tablename__ = "share_links"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, index=True, nullable=False)

    expires_at = Column(DateTime, nullable=True)
    max_downloads = Column(Integer, nullable=True)  # None for unlimited
    current_downloads = Column(Integer, default=0, nullable=False)
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    file = relationship("File", back_populates="share_links")
    download_logs = relationship(
        "DownloadLog",
        back_populates="share_link",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("max_downloads IS NULL OR max_downloads > 0", name="ck_share_links_max_downloads_positive"),
        CheckConstraint("current_downloads >= 0", name="ck_share_links_current_downloads_non_negative"),
        CheckConstraint(
            "max_downloads IS NULL OR current_downloads <= max_downloads",
            name="ck_share_links_current_within_max",
        ),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_exhausted(self) -> bool:
        return self.max_downloads is not None and self.current_downloads >= self.max_downloads

    def is_usable(self, now: datetime) -> bool:
        return bool(self.is_active) and not self.is_expired(now) and not self.is_exhausted

    @property
    def remaining_downloads(self) -> Optional[int]:
        if self.max_downloads is None:
            return None
        return max(0, self.max_downloads - self.current_downloads)

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None
