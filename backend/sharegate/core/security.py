import secrets

from jose import jwt
from passlib.context import CryptContext

from sharegate.core.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# 32 bytes -> 256 bits of entropy, 43 url-safe characters
SHARE_TOKEN_BYTES = 32


def generate_share_token() -> str:
    """
    Generate an unguessable, URL-safe share token.

    Draws from the OS CSPRNG through `secrets`. There is no fallback source:
    if the platform cannot provide secure randomness the error propagates.
    """
    return secrets.token_urlsafe(SHARE_TOKEN_BYTES)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)
