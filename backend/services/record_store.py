"""
Wingmann Engine - Record Store

Owns the canonical list of submissions, stored as one JSON array blob.

Every append rewrites the whole array (O(n) per write). That is acceptable
for the small volumes a questionnaire collects and keeps the blob readable
by hand.

Appends are serialized per store instance: read-all, next id, write-all
happen under one asyncio.Lock, so two submissions handled concurrently by
this process never share an id or overwrite each other. Several processes
writing the same blob are still last-write-wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.errors import StorageWriteError
from ..core.models import Submission
from ..storage.blob_store import JSON_CONTENT_TYPE, BlobReadError, BlobStore

logger = logging.getLogger(__name__)

DATA_BLOB = "wingmann_submissions.json"


def utc_now_iso() -> str:
    """Server timestamp in ISO 8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def encode_records(records: list[Submission]) -> bytes:
    return json.dumps(
        [record.model_dump() for record in records],
        indent=2,
        ensure_ascii=False,
    ).encode("utf-8")


def decode_records(raw: bytes) -> list[Submission]:
    """
    Parse the canonical blob.

    Raises:
        ValueError: content is not a JSON array of submissions
    """
    try:
        data = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")

    try:
        return [Submission.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise ValueError(f"malformed submission: {e.error_count()} errors") from e


class RecordStore:
    """Append-only canonical submission list backed by a blob store."""

    def __init__(self, blobs: BlobStore, blob_name: str = DATA_BLOB):
        self._blobs = blobs
        self.blob_name = blob_name
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create an empty array if the canonical blob does not exist yet."""
        try:
            existing = await self._blobs.read(self.blob_name)
        except BlobReadError as e:
            logger.error(f"Cannot check {self.blob_name} at startup: {e}")
            return

        if existing is None:
            if await self._blobs.write(self.blob_name, encode_records([]), JSON_CONTENT_TYPE):
                logger.info(f"Initialized empty record store: {self.blob_name}")
            else:
                logger.error(f"Failed to initialize record store: {self.blob_name}")

    async def read_all(self) -> list[Submission]:
        """
        Return every stored submission in append order.

        Never raises. An absent blob is an empty list. An unreadable or
        corrupt blob is logged and also treated as empty; the next append
        will then start over from id 1 and overwrite it.
        """
        try:
            raw = await self._blobs.read(self.blob_name)
        except BlobReadError as e:
            logger.error(f"Error reading submissions: {e}", extra={"blob": self.blob_name})
            return []

        if raw is None:
            return []

        try:
            return decode_records(raw)
        except ValueError as e:
            logger.error(
                f"Corrupt record store {self.blob_name} treated as empty: {e}",
                extra={"blob": self.blob_name},
            )
            return []

    async def count(self) -> int:
        return len(await self.read_all())

    async def append(
        self,
        fields: dict[str, Any],
        submission_date: Optional[str] = None,
    ) -> Submission:
        """
        Store a new submission and return it with its assigned id.

        Args:
            fields: name, age, gender, city, contact, answer1..answer4
            submission_date: client-supplied timestamp, defaults to now

        Raises:
            StorageWriteError: the list could not be read back or persisted;
                the submission is not stored
        """
        async with self._lock:
            try:
                raw = await self._blobs.read(self.blob_name)
            except BlobReadError as e:
                # Rewriting from an empty list here would drop every record
                logger.error(f"Refusing to append, current list unreadable: {e}")
                raise StorageWriteError() from e

            records: list[Submission] = []
            if raw is not None:
                try:
                    records = decode_records(raw)
                except ValueError as e:
                    logger.error(
                        f"Corrupt record store {self.blob_name} treated as empty: {e}",
                        extra={"blob": self.blob_name},
                    )

            now = utc_now_iso()
            record = Submission(
                **fields,
                id=len(records) + 1,
                submission_date=submission_date or now,
                created_at=now,
            )
            records.append(record)

            if not await self._blobs.write(self.blob_name, encode_records(records), JSON_CONTENT_TYPE):
                raise StorageWriteError()

        logger.info(
            f"Submission {record.id} stored ({len(records)} total)",
            extra={"submission_id": record.id, "total": len(records)},
        )
        return record
