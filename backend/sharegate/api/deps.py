import ipaddress
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from sharegate import crud, models
from sharegate.core import security
from sharegate.db.session import SessionLocal
from sharegate.services.download_authorizer import DownloadAuthorizer
from sharegate.services.object_store import LocalObjectStore, ObjectStore
from sharegate.services.rate_limiter import RateLimiter

# Tokens are issued by the external auth provider
reusable_bearer = HTTPBearer(auto_error=False)

# Longest textual IPv6 form, matching the ip_address columns
IP_ADDRESS_MAX_LENGTH = 45


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials = Depends(reusable_bearer),
) -> models.User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = security.decode_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    user = crud.user.get_by_email(db, email=email)
    if not user:
        # First request from a provider identity: mirror it locally
        user = crud.user.create_mirror(db, email=email, display_name=payload.get("name"))
    return user


@lru_cache()
def get_object_store() -> ObjectStore:
    return LocalObjectStore.from_settings()


@lru_cache()
def get_authorizer() -> DownloadAuthorizer:
    return DownloadAuthorizer(RateLimiter.from_settings())


def _parse_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        ip = str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None
    return ip if len(ip) <= IP_ADDRESS_MAX_LENGTH else None


def get_client_ip(request: Request) -> str:
    """
    First x-forwarded-for hop, then x-real-ip, then the socket peer.

    Header values are client controlled: anything that is not an IP address
    is skipped, so the stored value always fits the ledger columns.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    candidates = [
        forwarded_for.split(",")[0] if forwarded_for else None,
        request.headers.get("x-real-ip"),
    ]
    for candidate in candidates:
        ip = _parse_ip(candidate)
        if ip:
            return ip
    if request.client and request.client.host:
        return request.client.host[:IP_ADDRESS_MAX_LENGTH]
    return "0.0.0.0"
