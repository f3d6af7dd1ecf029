"""
Download authorization.

Decides, for a bare share token, whether a download may proceed and, when it
may, records it in a single transaction:

    RECEIVED -> RATE_CHECKED -> LINK_VALIDATED -> CONSUMED
                     \\               \\
                      `-> REJECTED     `-> REJECTED

Rejections after the rate check append exactly one failed DownloadAttempt.
A consume appends a successful DownloadAttempt and a DownloadLog and bumps the
link's counter; the three writes commit together or not at all.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sharegate import crud
from sharegate.core.errors import (
    InternalError,
    InvalidLink,
    InvalidPassword,
    LinkExhausted,
    LinkExpired,
    ShareError,
)
from sharegate.core.security import verify_password
from sharegate.models.share_link import ShareLink
from sharegate.services.rate_limiter import RateLimiter
from sharegate.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class AuthorizationState(Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    LINK_VALIDATED = "link_validated"
    CONSUMED = "consumed"
    REJECTED = "rejected"


@dataclass
class ConsumeResult:
    """Outcome of a successful consume. Carries the object key, never a URL."""

    log_id: int
    share_link_id: int
    storage_path: str
    filename: str
    state: AuthorizationState = AuthorizationState.CONSUMED


def rejection_for(link: ShareLink, now: datetime) -> Optional[ShareError]:
    """The error a request against `link` must fail with, or None if usable."""
    if not link.is_active:
        return InvalidLink()
    if link.is_expired(now):
        return LinkExpired()
    if link.is_exhausted:
        return LinkExhausted()
    return None


class DownloadAuthorizer:
    def __init__(self, rate_limiter: RateLimiter, clock: Callable[[], datetime] = utcnow):
        self.rate_limiter = rate_limiter
        self.clock = clock

    def authorize(
        self,
        db: Session,
        *,
        token: str,
        ip_address: str,
        user_agent: Optional[str] = None,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ConsumeResult:
        """
        Run one request through the state machine.

        Raises:
            RateLimited: an attempt window is full (nothing is recorded)
            InvalidLink: unknown token or deactivated link
            LinkExpired / LinkExhausted: link no longer usable
            InvalidPassword: link is password protected and the password is wrong
            InternalError: the store failed; nothing was partially written
        """
        now = now or self.clock()
        state = AuthorizationState.RECEIVED
        try:
            self.rate_limiter.check(db, ip_address=ip_address, token=token, now=now)
            state = self._advance(state, AuthorizationState.RATE_CHECKED, token)

            link = crud.share_link.get_by_token(db, token=token)
            if link is None:
                self._reject(db, InvalidLink(), token=token, ip_address=ip_address, now=now)

            error = rejection_for(link, now)
            if error is None and link.password_hash is not None:
                if not password or not verify_password(password, link.password_hash):
                    error = InvalidPassword()
            if error is not None:
                self._reject(db, error, token=token, ip_address=ip_address, now=now)
            state = self._advance(state, AuthorizationState.LINK_VALIDATED, token)

            result = self._consume(
                db, link=link, token=token, ip_address=ip_address, user_agent=user_agent, now=now
            )
            self._advance(state, AuthorizationState.CONSUMED, token)
            return result
        except ShareError as e:
            self._advance(state, AuthorizationState.REJECTED, token)
            logger.info("Download for token %s... rejected: %s", token[:8], e.category.value)
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise InternalError(f"Store failure while authorizing download: {e}", original_error=e) from e

    def _consume(
        self,
        db: Session,
        *,
        link: ShareLink,
        token: str,
        ip_address: str,
        user_agent: Optional[str],
        now: datetime,
    ) -> ConsumeResult:
        # Copy what the result needs before the commit expires the instance
        share_link_id = link.id
        storage_path = link.file.storage_path
        filename = link.file.original_filename

        if not crud.share_link.increment_downloads(db, share_link_id=share_link_id, now=now):
            # Lost the race, or the link changed since it was read
            db.rollback()
            current = crud.share_link.get_by_token(db, token=token)
            error = InvalidLink() if current is None else (rejection_for(current, now) or LinkExhausted())
            self._reject(db, error, token=token, ip_address=ip_address, now=now)

        crud.download_attempt.add(db, ip_address=ip_address, token=token, success=True, attempted_at=now)
        log = crud.download_log.add(
            db, share_link_id=share_link_id, ip_address=ip_address, user_agent=user_agent, downloaded_at=now
        )
        log_id = log.id
        db.commit()

        return ConsumeResult(
            log_id=log_id,
            share_link_id=share_link_id,
            storage_path=storage_path,
            filename=filename,
        )

    def _reject(self, db: Session, error: ShareError, *, token: str, ip_address: str, now: datetime) -> None:
        crud.download_attempt.add(db, ip_address=ip_address, token=token, success=False, attempted_at=now)
        db.commit()
        raise error

    def _advance(self, current: AuthorizationState, new: AuthorizationState, token: str) -> AuthorizationState:
        logger.debug("Token %s...: %s -> %s", token[:8], current.value, new.value)
        return new
