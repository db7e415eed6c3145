"""Local blob store with expiring signed URLs."""

import hashlib
import hmac
import time
from pathlib import Path
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from deckgate.config import settings

UPLOADS_PREFIX = "/uploads"


class StorageService:
    """Blob storage rooted at ``settings.storage_path``.

    Keys are relative POSIX paths. Files are only reachable through signed
    URLs: ``/uploads/<key>?expires=<unix>&signature=<hex>``.
    """

    def __init__(self, root: str | Path | None = None, secret: str | None = None) -> None:
        self.upload_dir = Path(root or settings.storage_path).resolve()
        self._secret = (secret or settings.session_secret).encode()

    def resolve(self, key: str) -> Path | None:
        """Map a key to a path inside the storage root, None if it escapes."""
        if not key or key.startswith("/"):
            return None
        path = (self.upload_dir / key).resolve()
        if not path.is_relative_to(self.upload_dir):
            return None
        return path

    def _sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def create_signed_url(self, key: str, ttl_seconds: int | None = None) -> str:
        """Return a URL for ``key`` that stops working after ``ttl_seconds``."""
        ttl = ttl_seconds or settings.signed_url_expiration_seconds
        expires = int(time.time()) + ttl
        query = urlencode({"expires": expires, "signature": self._sign(key, expires)})
        return f"{UPLOADS_PREFIX}/{quote(key)}?{query}"

    def verify_signature(
        self,
        key: str,
        expires: int,
        signature: str,
        now: float | None = None,
    ) -> bool:
        if expires < int(now if now is not None else time.time()):
            return False
        return hmac.compare_digest(self._sign(key, expires), signature)

    async def upload_file(self, key: str, data: bytes) -> str:
        """Write ``data`` under ``key`` and return the key."""
        path = self.resolve(key)
        if path is None:
            raise ValueError(f"Invalid storage key: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        return key

    async def file_exists(self, key: str) -> bool:
        path = self.resolve(key)
        if path is None:
            return False
        return await aiofiles.os.path.isfile(path)

    async def delete_file(self, key: str) -> bool:
        """Delete a file by key. Returns False if it was not there."""
        path = self.resolve(key)
        if path is None or not await aiofiles.os.path.exists(path):
            return False
        await aiofiles.os.remove(path)
        return True


storage = StorageService()
