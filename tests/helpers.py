"""
tests/helpers.py

In-memory blob stores and payload builders shared by the test suite.
"""

from __future__ import annotations

import asyncio
from typing import Any

from backend.storage.blob_store import JSON_CONTENT_TYPE, BlobReadError, BlobStore


class MemoryBlobStore(BlobStore):
    """Blob store held in a dict. Records every write for assertions."""

    backend = "memory"

    def __init__(self, initial: dict[str, bytes] | None = None):
        self.blobs: dict[str, bytes] = dict(initial or {})
        self.content_types: dict[str, str] = {}
        self.writes: list[str] = []

    async def read(self, name: str) -> bytes | None:
        # Yield so concurrent appends interleave like real I/O
        await asyncio.sleep(0)
        return self.blobs.get(name)

    async def write(self, name: str, data: bytes, content_type: str = JSON_CONTENT_TYPE) -> bool:
        await asyncio.sleep(0)
        self.blobs[name] = data
        self.content_types[name] = content_type
        self.writes.append(name)
        return True


class FlakyBlobStore(MemoryBlobStore):
    """
    Memory store that fails on demand.

    fail_writes: blob names whose writes return False
    fail_reads: blob names whose reads raise BlobReadError
    """

    def __init__(
        self,
        fail_writes: set[str] | None = None,
        fail_reads: set[str] | None = None,
        initial: dict[str, bytes] | None = None,
    ):
        super().__init__(initial)
        self.fail_writes = set(fail_writes or ())
        self.fail_reads = set(fail_reads or ())
        self.failed_writes: list[str] = []

    async def read(self, name: str) -> bytes | None:
        if name in self.fail_reads:
            raise BlobReadError(f"simulated read failure: {name}")
        return await super().read(name)

    async def write(self, name: str, data: bytes, content_type: str = JSON_CONTENT_TYPE) -> bool:
        if name in self.fail_writes:
            self.failed_writes.append(name)
            return False
        return await super().write(name, data, content_type)


def make_payload(**overrides: Any) -> dict[str, Any]:
    """A complete /api/submit body; keyword overrides replace top-level keys."""
    payload: dict[str, Any] = {
        "personalInfo": {
            "name": "Ana",
            "age": "27",
            "gender": "F",
            "city": "Pune",
            "contact": "a@x.io",
        },
        "answers": {
            "question1": "picnic",
            "question2": "puns",
            "question3": "chill",
            "question4": "rude",
        },
        "submissionDate": "2024-05-01T10:00:00Z",
    }
    payload.update(overrides)
    return payload


def make_fields(name: str = "Ana", **overrides: str) -> dict[str, str]:
    """Record fields as accepted by RecordStore.append."""
    fields = {
        "name": name,
        "age": "27",
        "gender": "F",
        "city": "Pune",
        "contact": "a@x.io",
        "answer1": "picnic",
        "answer2": "puns",
        "answer3": "chill",
        "answer4": "rude",
    }
    fields.update(overrides)
    return fields
