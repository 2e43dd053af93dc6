"""
Tests for blob store backends.

The Supabase backend is exercised against a mocked client; the storage
API itself is not contacted.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from backend.config import Settings
from backend.storage.blob_store import (
    BlobReadError,
    LocalBlobStore,
    SupabaseBlobStore,
    create_blob_store,
)


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_absent_blob_reads_none(self, tmp_path: Path) -> None:
        assert await LocalBlobStore(tmp_path).read("missing.json") is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path / "nested")

        assert await store.write("a.json", b"[]") is True
        assert await store.read("a.json") == b"[]"
        assert (tmp_path / "nested" / "a.json").read_bytes() == b"[]"

    @pytest.mark.asyncio
    async def test_write_replaces_and_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = LocalBlobStore(tmp_path)
        await store.write("a.json", b"one")
        await store.write("a.json", b"two")

        assert await store.read("a.json") == b"two"
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    @pytest.mark.asyncio
    async def test_unwritable_root_returns_false(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")

        assert await LocalBlobStore(blocker).write("a.json", b"[]") is False

    @pytest.mark.asyncio
    async def test_unreadable_blob_raises(self, tmp_path: Path) -> None:
        (tmp_path / "a.json").mkdir()

        with pytest.raises(BlobReadError):
            await LocalBlobStore(tmp_path).read("a.json")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["../escape.json", "a/b.json", "..", ""])
    async def test_rejects_path_names(self, tmp_path: Path, name: str) -> None:
        with pytest.raises(ValueError):
            await LocalBlobStore(tmp_path).read(name)


class TestSupabaseBlobStore:
    def _store(self) -> tuple[SupabaseBlobStore, MagicMock]:
        client = MagicMock()
        bucket = client.storage.from_.return_value
        return SupabaseBlobStore(client, "wingmann-submissions"), bucket

    @pytest.mark.asyncio
    async def test_read_existing(self) -> None:
        store, bucket = self._store()
        bucket.list.return_value = [{"name": "a.json"}]
        bucket.download.return_value = b"[]"

        assert await store.read("a.json") == b"[]"
        bucket.list.assert_called_once_with("", {"search": "a.json"})
        bucket.download.assert_called_once_with("a.json")

    @pytest.mark.asyncio
    async def test_read_absent(self) -> None:
        store, bucket = self._store()
        bucket.list.return_value = [{"name": "a.json.bak"}]

        assert await store.read("a.json") is None
        bucket.download.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_failure_raises(self) -> None:
        store, bucket = self._store()
        bucket.list.side_effect = RuntimeError("network down")

        with pytest.raises(BlobReadError):
            await store.read("a.json")

    @pytest.mark.asyncio
    async def test_write_upserts_with_content_type(self) -> None:
        store, bucket = self._store()

        assert await store.write("a.csv", b"x", "text/csv; charset=utf-8") is True
        bucket.upload.assert_called_once_with(
            path="a.csv",
            file=b"x",
            file_options={"content-type": "text/csv; charset=utf-8", "upsert": "true"},
        )

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(self) -> None:
        store, bucket = self._store()
        bucket.upload.side_effect = RuntimeError("quota exceeded")

        assert await store.write("a.json", b"[]") is False


class TestCreateBlobStore:
    def test_local_by_default(self, tmp_path: Path) -> None:
        store = create_blob_store(Settings(ENVIRONMENT="dev", DATA_DIR=str(tmp_path)))

        assert isinstance(store, LocalBlobStore)
        assert store.root == tmp_path

    def test_supabase_requires_credentials(self) -> None:
        settings = Settings(
            ENVIRONMENT="dev",
            STORAGE_BACKEND="supabase",
            SUPABASE_URL="",
            SUPABASE_SERVICE_ROLE_KEY="",
        )

        with pytest.raises(RuntimeError, match="SUPABASE_URL"):
            create_blob_store(settings)
