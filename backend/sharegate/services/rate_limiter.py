"""
Download rate limiting.

Both windows are sliding: each check counts ledger rows newer than
`now - window`, so nothing is ever reset on a schedule and an entry stops
counting the moment it ages out. The checks only read.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from sharegate import crud
from sharegate.core.config import settings
from sharegate.core.errors import RateLimited

logger = logging.getLogger(__name__)


def ip_window_exceeded(
    db: Session, *, ip_address: str, now: datetime, limit: int, window: timedelta
) -> bool:
    """True once `limit` attempts of any outcome came from `ip_address` within the window."""
    count = crud.download_attempt.count_by_ip_since(db, ip_address=ip_address, since=now - window)
    return count >= limit


def token_failure_window_exceeded(
    db: Session, *, token: str, now: datetime, limit: int, window: timedelta
) -> bool:
    """True once `limit` failed attempts against `token` happened within the window."""
    count = crud.download_attempt.count_failures_by_token_since(db, token=token, since=now - window)
    return count >= limit


class RateLimiter:
    def __init__(
        self,
        ip_limit: int = 20,
        token_failure_limit: int = 10,
        window: timedelta = timedelta(hours=1),
    ):
        self.ip_limit = ip_limit
        self.token_failure_limit = token_failure_limit
        self.window = window

    @classmethod
    def from_settings(cls) -> "RateLimiter":
        return cls(
            ip_limit=settings.IP_RATE_LIMIT,
            token_failure_limit=settings.TOKEN_FAILURE_LIMIT,
            window=timedelta(seconds=settings.RATE_LIMIT_WINDOW_SECONDS),
        )

    def check_ip(self, db: Session, *, ip_address: str, now: datetime) -> None:
        if ip_window_exceeded(db, ip_address=ip_address, now=now, limit=self.ip_limit, window=self.window):
            logger.info("IP rate limit hit for %s", ip_address)
            raise RateLimited()

    def check_token(self, db: Session, *, token: str, now: datetime) -> None:
        if token_failure_window_exceeded(
            db, token=token, now=now, limit=self.token_failure_limit, window=self.window
        ):
            logger.info("Token failure limit hit for token %s...", token[:8])
            raise RateLimited()

    def check(self, db: Session, *, ip_address: str, token: str, now: datetime) -> None:
        """
        Raises:
            RateLimited: if either window is full
        """
        self.check_ip(db, ip_address=ip_address, now=now)
        self.check_token(db, token=token, now=now)
