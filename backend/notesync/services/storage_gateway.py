"""
NoteSync Backend — Object Storage Gateway
===========================================

What:  Contract for the object-storage service holding image bytes, plus a
       local-disk implementation with signed, time-limited access URLs.
Why:   The synchronizer only needs "upload bytes at path" and "resolve a
       temporary URL for path". Keeping that behind an abstract class lets
       tests substitute an in-memory store and lets deployments swap the
       local store for a cloud bucket.
How:   LocalStorageGateway writes objects under `root/<path>` with aiofiles and
       signs URLs with HMAC-SHA256 over "<path>:<expires>". The file route
       verifies the signature before serving the object.

Resolved URL format:
    {public_base_url}/api/files/{path}?expires={unix_ts}&signature={hex}
"""

import hashlib
import hmac
import logging
import os
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from notesync.exceptions import (
    AccessDeniedError,
    NotFoundError,
    RemoteReadError,
    RemoteWriteError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class StorageGateway(ABC):
    """
    Abstract interface to the object-storage service.

    Contract:
        - upload() stores bytes at a path, replacing nothing the core relies on
        - resolve_url() returns a URL valid for a limited window; callers
          re-resolve instead of caching
        - failures are raised as RemoteWriteError / RemoteReadError
    """

    @abstractmethod
    async def upload(self, path: str, content: bytes) -> None:
        """Store `content` at `path`. Raises RemoteWriteError."""
        ...

    @abstractmethod
    async def resolve_url(self, path: str) -> str:
        """Return a temporary access URL for the object at `path`. Raises RemoteReadError."""
        ...


class LocalStorageGateway(StorageGateway):
    """
    Object store backed by a directory on local disk.

    Directory Structure:
        storage/
        └── media/
            └── <identity>/
                └── <note id>/
                    └── list.png
    """

    def __init__(
        self,
        root: str,
        signing_secret: str,
        ttl_seconds: int = 900,
        public_base_url: str = "",
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            root: Directory holding all objects (created if missing)
            signing_secret: HMAC key for resolved URLs
            ttl_seconds: Validity window of a resolved URL
            public_base_url: Prefix for resolved URLs ("" yields relative URLs)
            clock: Time source in epoch seconds (overridden in tests)
        """
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self._secret = signing_secret.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self.public_base_url = public_base_url.rstrip("/")
        self._clock = clock
        logger.info("LocalStorageGateway initialized with root=%s", self.root)

    # ── Path handling ─────────────────────────────────────────────────────

    def _locate(self, path: str) -> Path:
        """Map a storage path to a file under root, refusing anything outside it."""
        if not path or path.endswith("/"):
            raise ValidationError(
                message="Storage path must name a file",
                field="path",
                context={"path": path},
            )
        # Lexical only: no filesystem access on the event loop
        location = Path(os.path.normpath(self.root / path))
        if not location.is_relative_to(self.root):
            raise ValidationError(
                message="Storage path escapes the storage root",
                field="path",
                context={"path": path},
            )
        return location

    # ── Signing ───────────────────────────────────────────────────────────

    def _sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def verify(self, path: str, expires: int, signature: str) -> Path:
        """
        Check a resolved URL and return the object's file location.

        Raises:
            AccessDeniedError: signature mismatch or expired URL
            NotFoundError: the object no longer exists
        """
        expected = self._sign(path, expires)
        if not hmac.compare_digest(expected, signature):
            logger.warning("Rejected image URL with bad signature for %s", path)
            raise AccessDeniedError(context={"path": path, "reason": "signature"})
        if expires < self._clock():
            raise AccessDeniedError(context={"path": path, "reason": "expired"})

        location = self._locate(path)
        if not await aiofiles.os.path.isfile(location):
            raise NotFoundError(resource="image", resource_id=path)
        return location

    # ── StorageGateway contract ───────────────────────────────────────────

    async def upload(self, path: str, content: bytes) -> None:
        location = self._locate(path)
        try:
            await aiofiles.os.makedirs(location.parent, exist_ok=True)
            async with aiofiles.open(location, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store object at %s: %s", path, str(e))
            raise RemoteWriteError(
                message="Failed to save the image. Please try again.",
                context={"path": path, "os_error": str(e)},
            )
        logger.info("Object stored: %s (%d bytes)", path, len(content))

    async def resolve_url(self, path: str) -> str:
        location = self._locate(path)
        if not await aiofiles.os.path.isfile(location):
            raise RemoteReadError(
                message="Image is not available",
                context={"path": path, "reason": "missing"},
            )
        expires = int(self._clock()) + self.ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(path, expires)})
        return f"{self.public_base_url}/api/files/{quote(path)}?{query}"

