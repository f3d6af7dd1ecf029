from datetime import datetime
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from sharegate.models.download import DownloadAttempt, DownloadLog

class CRUDDownloadAttempt:
    """Append-only ledger. Rows are added, counted and never updated."""

    def add(
        self, db: Session, *, ip_address: str, token: str, success: bool, attempted_at: datetime
    ) -> DownloadAttempt:
        # Staged only; committed together with whatever the caller is writing
        db_obj = DownloadAttempt(
            ip_address=ip_address,
            token=token,
            success=success,
            attempted_at=attempted_at
        )
        db.add(db_obj)
        return db_obj

    def count_by_ip_since(self, db: Session, *, ip_address: str, since: datetime) -> int:
        return db.query(func.count(DownloadAttempt.id)).filter(
            DownloadAttempt.ip_address == ip_address,
            DownloadAttempt.attempted_at > since
        ).scalar()

    def count_failures_by_token_since(self, db: Session, *, token: str, since: datetime) -> int:
        return db.query(func.count(DownloadAttempt.id)).filter(
            DownloadAttempt.token == token,
            DownloadAttempt.success == False,  # noqa: E712
            DownloadAttempt.attempted_at > since
        ).scalar()

class CRUDDownloadLog:
    def add(
        self, db: Session, *, share_link_id: int, ip_address: Optional[str], user_agent: Optional[str],
        downloaded_at: datetime
    ) -> DownloadLog:
        db_obj = DownloadLog(
            share_link_id=share_link_id,
            ip_address=ip_address,
            user_agent=user_agent,
            downloaded_at=downloaded_at
        )
        db.add(db_obj)
        # Flush so the id is known before commit
        db.flush()
        return db_obj

download_attempt = CRUDDownloadAttempt()
download_log = CRUDDownloadLog()
