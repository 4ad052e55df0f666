"""Request-scoped storage for uploaded reference clips."""

from __future__ import annotations

import asyncio
import base64
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from uuid import uuid4

from loguru import logger

from .exceptions import AssetIOError, InputValidationError
from .types import TransientAsset

MIME_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
}
ACCEPTED_MIME_TYPES = frozenset(MIME_EXTENSIONS)
EXTENSION_MIME_TYPES = {extension: mime for mime, extension in MIME_EXTENSIONS.items()}


def check_mime_type(mime_type: Optional[str]) -> str:
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise InputValidationError(
            "Only MP3 and WAV files are allowed",
            details={"mime_type": mime_type},
        )
    return mime_type


class TransientAssetStore:
    """Owns the upload directory and the lifetime of every file written to it.

    Files are named with a random token plus an extension derived from the
    accepted mime type, so concurrent uploads never collide. The directory is
    created on the first save. :meth:`release` deletes an asset at most once.
    """

    def __init__(self, root: Path, *, max_bytes: Optional[int] = None) -> None:
        self._root = root
        self._max_bytes = max_bytes

    @property
    def root(self) -> Path:
        return self._root

    async def save(self, data: bytes, mime_type: Optional[str]) -> TransientAsset:
        mime = check_mime_type(mime_type)
        if not data:
            raise InputValidationError("No file uploaded")
        if self._max_bytes is not None and len(data) > self._max_bytes:
            raise InputValidationError(
                "Uploaded file is too large",
                details={"size_bytes": len(data), "max_bytes": self._max_bytes},
            )
        path = self._root / f"{uuid4().hex}{MIME_EXTENSIONS[mime]}"
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise AssetIOError(f"Failed to store upload: {exc}") from exc
        logger.info("Stored reference upload {} ({} bytes)", path.name, len(data))
        return TransientAsset(storage_path=path, mime_type=mime, size_bytes=len(data))

    def _write(self, path: Path, data: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        try:
            path.write_bytes(data)
        except OSError:
            path.unlink(missing_ok=True)
            raise

    async def read_data_uri(self, asset: TransientAsset) -> str:
        try:
            data = await asyncio.to_thread(asset.storage_path.read_bytes)
        except OSError as exc:
            raise AssetIOError(f"Failed to read upload: {exc}") from exc
        encoded = base64.b64encode(data).decode("ascii")
        logger.debug(
            "Encoded {} ({} bytes -> {} chars)", asset.storage_path.name, len(data), len(encoded)
        )
        return f"data:{asset.mime_type};base64,{encoded}"

    def release(self, asset: TransientAsset) -> None:
        # Runs from finally blocks; a failed unlink is logged so it never
        # replaces the error already in flight. purge() sweeps leftovers.
        if asset.released:
            return
        asset.released = True
        try:
            asset.storage_path.unlink(missing_ok=True)
        except OSError:
            logger.exception("Error deleting upload {}", asset.storage_path)
            return
        logger.info("Deleted reference upload {}", asset.storage_path.name)

    @asynccontextmanager
    async def hold(self, data: bytes, mime_type: Optional[str]) -> AsyncIterator[TransientAsset]:
        asset = await self.save(data, mime_type)
        try:
            yield asset
        finally:
            self.release(asset)

    def purge(self) -> None:
        """Best-effort removal of the whole upload directory."""
        if not self._root.exists():
            return
        try:
            shutil.rmtree(self._root)
        except OSError:
            logger.exception("Failed to clean up upload directory {}", self._root)
            return
        logger.info("Upload directory {} cleaned up", self._root)
