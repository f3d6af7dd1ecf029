from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from sharegate import crud, models, schemas
from sharegate.api import deps
from sharegate.core.errors import InvalidLink
from sharegate.services.download_authorizer import DownloadAuthorizer
from sharegate.utils.time_utils import utcnow

router = APIRouter()


def _get_owned_link(db: Session, link_id: int, user: models.User) -> models.ShareLink:
    share_link = crud.share_link.get_for_owner(db, id=link_id, user_id=user.id)
    if not share_link:
        raise HTTPException(status_code=404, detail="Share link not found")
    return share_link


@router.post("/", response_model=schemas.ShareLink, status_code=status.HTTP_201_CREATED)
def create_share(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    share_in: schemas.ShareLinkCreate,
) -> Any:
    """
    Create another share link for an owned file.
    """
    file = crud.file.get_for_owner(db, id=share_in.file_id, user_id=current_user.id)
    if not file:
        raise HTTPException(status_code=404, detail="File not found")

    return crud.share_link.create_with_fresh_token(db, file_id=file.id, obj_in=share_in)


@router.get("/{token}", response_model=schemas.ShareLinkPublic)
def get_share_info(
    *,
    db: Session = Depends(deps.get_db),
    authorizer: DownloadAuthorizer = Depends(deps.get_authorizer),
    request: Request,
    token: str,
) -> Any:
    """
    Get public share info for the download page. Only usable links resolve.
    """
    now = utcnow()
    authorizer.rate_limiter.check_ip(db, ip_address=deps.get_client_ip(request), now=now)

    share_link = crud.share_link.get_usable_by_token(db, token=token, now=now)
    if not share_link:
        raise InvalidLink()

    file = share_link.file
    return {
        "filename": file.filename,
        "original_filename": file.original_filename,
        "file_size": file.file_size,
        "content_type": file.content_type,
        "expires_at": share_link.expires_at,
        "max_downloads": share_link.max_downloads,
        "current_downloads": share_link.current_downloads,
        "remaining_downloads": share_link.remaining_downloads,
        "requires_password": share_link.requires_password,
    }


@router.post("/{link_id}/deactivate", response_model=schemas.ShareLink)
def deactivate_share(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    link_id: int,
) -> Any:
    share_link = _get_owned_link(db, link_id, current_user)
    return crud.share_link.deactivate(db, share_link=share_link)


@router.post("/{link_id}/regenerate", response_model=schemas.ShareLink)
def regenerate_share(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    link_id: int,
) -> Any:
    """
    Issue a new token for the link. The previous token stops working.
    """
    share_link = _get_owned_link(db, link_id, current_user)
    return crud.share_link.regenerate_token(db, share_link=share_link)
