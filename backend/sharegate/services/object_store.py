"""
Object Store

The blob store holding uploaded files is an external collaborator. This
service needs two things from it: a short-lived signed retrieval URL for an
object key, and removal of an object when its owner deletes the file.
"""

import hashlib
import hmac
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import quote, urlencode

from sharegate.core.config import settings

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """Raised when the blob store cannot serve a request."""


class ObjectStore(ABC):
    @abstractmethod
    def create_signed_url(self, storage_path: str, ttl_seconds: int) -> str:
        """Return a URL granting read access to `storage_path` for `ttl_seconds`."""

    @abstractmethod
    def remove(self, storage_path: str) -> None:
        """Delete the object. Removing a missing object is not an error."""


class LocalObjectStore(ObjectStore):
    """
    Objects kept on disk under `root`, served by a gateway at `base_url` that
    accepts `?expires=<epoch>&signature=<hmac>` query strings.

    The signature is HMAC-SHA256 over "<path>:<expires>" keyed with the
    service secret, so a URL cannot be extended or pointed at another object.
    """

    def __init__(self, root: str, base_url: str, secret_key: str):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        os.makedirs(self.root, exist_ok=True)

    @classmethod
    def from_settings(cls) -> "LocalObjectStore":
        return cls(
            root=settings.STORAGE_ROOT,
            base_url=settings.SIGNED_URL_BASE,
            secret_key=settings.SECRET_KEY,
        )

    def _sign(self, storage_path: str, expires: int) -> str:
        message = f"{storage_path}:{expires}"
        return hmac.new(
            self.secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def _resolve(self, storage_path: str) -> str:
        # Keys are relative; refuse anything that escapes the root
        full_path = os.path.abspath(os.path.join(self.root, storage_path))
        if os.path.commonpath([self.root, full_path]) != self.root:
            raise ObjectStoreError(f"Storage path outside of store root: {storage_path}")
        return full_path

    def create_signed_url(self, storage_path: str, ttl_seconds: int) -> str:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._resolve(storage_path)
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(storage_path, expires)})
        return f"{self.base_url}/{quote(storage_path)}?{query}"

    def verify_signed_url(self, storage_path: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        if expires <= now:
            return False
        # Use constant-time comparison to prevent timing attacks
        return hmac.compare_digest(signature, self._sign(storage_path, expires))

    def remove(self, storage_path: str) -> None:
        full_path = self._resolve(storage_path)
        try:
            os.remove(full_path)
        except FileNotFoundError:
            logger.warning("Object %s already absent from store", storage_path)
        except OSError as e:
            raise ObjectStoreError(f"Could not remove {storage_path}: {e}") from e
