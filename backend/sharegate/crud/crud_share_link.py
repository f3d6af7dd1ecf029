import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from sharegate.core.config import settings
from sharegate.core.errors import ConflictError, NotFoundError
from sharegate.core.security import generate_share_token, get_password_hash
from sharegate.crud.base import CRUDBase
from sharegate.models.file import File
from sharegate.models.share_link import ShareLink
from sharegate.schemas.share_link import ShareLinkCreate, ShareLinkPolicy
from sharegate.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def usable_clause(now: datetime):
    """SQL form of ShareLink.is_usable(now)."""
    return (
        ShareLink.is_active == True,  # noqa: E712
        or_(ShareLink.expires_at.is_(None), ShareLink.expires_at > now),
        or_(ShareLink.max_downloads.is_(None), ShareLink.current_downloads < ShareLink.max_downloads),
    )


class CRUDShareLink(CRUDBase[ShareLink, ShareLinkCreate, ShareLinkPolicy]):
    """
    Link registry.

    Untrusted callers only ever reach a link through `get_by_token` or
    `get_usable_by_token`, both exact-token matches. Everything else is scoped
    to an authenticated owner.
    """

    def create(
        self, db: Session, *, file_id: int, obj_in: ShareLinkPolicy, token: str,
        now: Optional[datetime] = None
    ) -> ShareLink:
        now = now or utcnow()
        if db.get(File, file_id) is None:
            raise NotFoundError("File not found")

        db_obj = ShareLink(
            file_id=file_id,
            token=token,
            expires_at=obj_in.resolve_expires_at(now),
            max_downloads=obj_in.max_downloads,
            current_downloads=0,
            password_hash=get_password_hash(obj_in.password) if obj_in.password else None,
            is_active=True,
            created_at=now,
            updated_at=now
        )
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("Share token already in use", original_error=e) from e
        db.refresh(db_obj)
        return db_obj

    def create_with_fresh_token(
        self, db: Session, *, file_id: int, obj_in: ShareLinkPolicy,
        token_factory: Callable[[], str] = generate_share_token,
        attempts: Optional[int] = None
    ) -> ShareLink:
        attempts = attempts or settings.TOKEN_INSERT_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                return self.create(db, file_id=file_id, obj_in=obj_in, token=token_factory())
            except ConflictError:
                logger.warning("Share token collision for file %s (attempt %d/%d)", file_id, attempt, attempts)
        raise ConflictError("Could not allocate a unique share token")

    def get_by_token(self, db: Session, *, token: str) -> Optional[ShareLink]:
        return (
            db.query(ShareLink)
            .options(joinedload(ShareLink.file))
            .filter(ShareLink.token == token)
            .first()
        )

    def get_usable_by_token(self, db: Session, *, token: str, now: Optional[datetime] = None) -> Optional[ShareLink]:
        now = now or utcnow()
        return (
            db.query(ShareLink)
            .join(File, File.id == ShareLink.file_id)
            .options(joinedload(ShareLink.file))
            .filter(ShareLink.token == token, *usable_clause(now))
            .first()
        )

    def get_for_owner(self, db: Session, *, id: int, user_id: int) -> Optional[ShareLink]:
        return (
            db.query(ShareLink)
            .join(File, File.id == ShareLink.file_id)
            .filter(ShareLink.id == id, File.user_id == user_id)
            .first()
        )

    def deactivate(self, db: Session, *, share_link: ShareLink) -> ShareLink:
        if share_link.is_active:
            share_link.is_active = False
            share_link.updated_at = utcnow()
            db.add(share_link)
            db.commit()
            db.refresh(share_link)
        return share_link

    def regenerate_token(
        self, db: Session, *, share_link: ShareLink,
        token_factory: Callable[[], str] = generate_share_token,
        attempts: Optional[int] = None
    ) -> ShareLink:
        """
        Swap the link's token. The download counter and active flag are kept;
        the old token stops resolving as soon as this commits.
        """
        attempts = attempts or settings.TOKEN_INSERT_RETRIES
        for attempt in range(1, attempts + 1):
            share_link.token = token_factory()
            share_link.updated_at = utcnow()
            db.add(share_link)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning("Share token collision regenerating link %s (attempt %d/%d)", share_link.id, attempt, attempts)
                continue
            db.refresh(share_link)
            return share_link
        raise ConflictError("Could not allocate a unique share token")

    def increment_downloads(self, db: Session, *, share_link_id: int, now: datetime) -> bool:
        """
        Conditionally bump current_downloads by one.

        The usability predicate is re-checked inside the UPDATE, so concurrent
        consumers serialize on the row and never push the counter past
        max_downloads. Returns False when the link was no longer usable.
        Does not commit: the caller owns the transaction.
        """
        stmt = (
            update(ShareLink)
            .where(ShareLink.id == share_link_id, *usable_clause(now))
            .values(current_downloads=ShareLink.current_downloads + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        return result.rowcount == 1

share_link = CRUDShareLink(ShareLink)
