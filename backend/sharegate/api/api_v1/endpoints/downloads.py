import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from sharegate import schemas
from sharegate.api import deps
from sharegate.core.config import settings
from sharegate.core.errors import InternalError, InvalidInput
from sharegate.services.download_authorizer import DownloadAuthorizer
from sharegate.services.object_store import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_download_request(payload: Any) -> schemas.DownloadRequest:
    """Every malformed body is an InvalidInput (400), never a 422."""
    try:
        download_in = schemas.DownloadRequest.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        raise InvalidInput("Token is malformed") from e

    token = (download_in.token or "").strip()
    if not token:
        raise InvalidInput()
    if len(token) > settings.MAX_TOKEN_LENGTH:
        raise InvalidInput("Token is malformed")
    download_in.token = token
    return download_in


@router.post("/download-file", response_model=schemas.DownloadGrant)
def download_file(
    *,
    db: Session = Depends(deps.get_db),
    authorizer: DownloadAuthorizer = Depends(deps.get_authorizer),
    object_store: ObjectStore = Depends(deps.get_object_store),
    request: Request,
    payload: Any = Body(None),
) -> Any:
    """
    Authorize one download of a shared file and hand back a short-lived
    signed URL for it.
    """
    download_in = parse_download_request(payload)

    result = authorizer.authorize(
        db,
        token=download_in.token,
        ip_address=deps.get_client_ip(request),
        user_agent=request.headers.get("user-agent") or "unknown",
        password=download_in.password,
    )

    # The download is already counted; only now may a URL be issued
    try:
        signed_url = object_store.create_signed_url(result.storage_path, settings.SIGNED_URL_TTL_SECONDS)
    except Exception as e:
        raise InternalError(f"Failed to generate signed URL for log {result.log_id}: {e}", original_error=e) from e

    return {"signed_url": signed_url, "filename": result.filename}
