from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from sharegate.db.base_class import Base
from sharegate.utils.time_utils import utcnow

class DownloadLog(Base):
    """One row per successful consume. Append-only."""
    __tablename__ = "download_logs"

    id = Column(Integer, primary_key=True, index=True)
    share_link_id = Column(Integer, ForeignKey("share_links.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    downloaded_at = Column(DateTime, default=utcnow, nullable=False)

    share_link = relationship("ShareLink", back_populates="download_logs")

class DownloadAttempt(Base):
    """
    Append-only ledger of authorization attempts, success or not.
    References the token by value so it outlives the link it names.
    """
    __tablename__ = "download_attempts"

    id = Column(Integer, primary_key=True, index=True)
    ip_address = Column(String(45), nullable=False)
    token = Column(String(128), nullable=False)
    attempted_at = Column(DateTime, default=utcnow, nullable=False)
    success = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_download_attempts_ip_time", "ip_address", "attempted_at"),
        Index("idx_download_attempts_token_time", "token", "attempted_at"),
    )
