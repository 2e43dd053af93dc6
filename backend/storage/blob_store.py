"""
Wingmann Engine - Blob Store

Byte-oriented persistence behind one interface. The engine is written once
against BlobStore; the backend is chosen by STORAGE_BACKEND:

    local     - files in DATA_DIR
    supabase  - objects in the Supabase Storage bucket STORAGE_BUCKET

Backend calls are blocking and run in a worker thread so the event loop
keeps serving other requests while a read or write is in flight.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..config import Settings

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class BlobReadError(Exception):
    """Backend failed to read an existing blob (distinct from absence)."""


class BlobStore(ABC):
    """Key-value byte storage."""

    backend: str = "abstract"

    @abstractmethod
    async def read(self, name: str) -> bytes | None:
        """
        Return the blob contents, or None if it does not exist.

        Raises:
            BlobReadError: the backend could not be read
        """

    @abstractmethod
    async def write(self, name: str, data: bytes, content_type: str = JSON_CONTENT_TYPE) -> bool:
        """Replace the blob contents. Returns False on failure, never raises."""


def _check_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in {".", ".."}:
        raise ValueError(f"Invalid blob name: {name!r}")
    return name


# =============================================================================
# Local filesystem
# =============================================================================


class LocalBlobStore(BlobStore):
    """Blobs stored as files in a single directory."""

    backend = "local"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        return self.root / _check_name(name)

    def _read_sync(self, name: str) -> bytes | None:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobReadError(f"Cannot read {path}: {e}") from e

    def _write_sync(self, name: str, data: bytes) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so readers never see a half-written file
        fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def read(self, name: str) -> bytes | None:
        return await asyncio.to_thread(self._read_sync, name)

    async def write(self, name: str, data: bytes, content_type: str = JSON_CONTENT_TYPE) -> bool:
        try:
            await asyncio.to_thread(self._write_sync, name, data)
            return True
        except OSError as e:
            logger.error(
                f"Error writing {name} to {self.root}: {e}",
                extra={"blob": name, "backend": self.backend},
            )
            return False

    def __repr__(self) -> str:
        return f"LocalBlobStore(root={str(self.root)!r})"


# =============================================================================
# Supabase Storage
# =============================================================================


class SupabaseBlobStore(BlobStore):
    """Blobs stored as objects at the root of a Supabase Storage bucket."""

    backend = "supabase"

    def __init__(self, client: Any, bucket: str):
        self._client = client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self._client.storage.from_(self.bucket)

    def _exists_sync(self, name: str) -> bool:
        entries = self._bucket().list("", {"search": name})
        return any(entry.get("name") == name for entry in entries or [])

    def _read_sync(self, name: str) -> bytes | None:
        _check_name(name)
        try:
            if not self._exists_sync(name):
                return None
            return self._bucket().download(name)
        except Exception as e:
            raise BlobReadError(f"Cannot read {name} from bucket {self.bucket}: {e}") from e

    def _write_sync(self, name: str, data: bytes, content_type: str) -> None:
        _check_name(name)
        self._bucket().upload(
            path=name,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )

    async def read(self, name: str) -> bytes | None:
        return await asyncio.to_thread(self._read_sync, name)

    async def write(self, name: str, data: bytes, content_type: str = JSON_CONTENT_TYPE) -> bool:
        try:
            await asyncio.to_thread(self._write_sync, name, data, content_type)
            return True
        except Exception as e:
            logger.error(
                f"Error writing {name} to bucket {self.bucket}: {e}",
                extra={"blob": name, "backend": self.backend},
            )
            return False

    def __repr__(self) -> str:
        return f"SupabaseBlobStore(bucket={self.bucket!r})"


def create_supabase_client(settings: Settings) -> Any:
    """Build a Supabase client from settings."""
    from supabase import create_client

    url = settings.SUPABASE_URL.strip()
    key = settings.SUPABASE_SERVICE_ROLE_KEY.strip()
    missing = [
        name
        for name, value in {
            "SUPABASE_URL": url,
            "SUPABASE_SERVICE_ROLE_KEY": key,
        }.items()
        if not value
    ]
    if missing:
        raise RuntimeError("Missing Supabase credential(s): " + ", ".join(missing))
    return create_client(url, key)


def create_blob_store(settings: Settings) -> BlobStore:
    """Select the blob store backend from configuration."""
    if settings.STORAGE_BACKEND == "supabase":
        store: BlobStore = SupabaseBlobStore(
            create_supabase_client(settings), settings.STORAGE_BUCKET
        )
    else:
        store = LocalBlobStore(settings.DATA_DIR)

    logger.info(f"Blob store: {store!r}", extra={"backend": store.backend})
    return store
