"""
Wingmann Engine - Export Generator

Derives the CSV and XLSX exports from the canonical submission list.

render_csv and render_xlsx are pure: the same records always produce the
same bytes. Exports are rebuilt in full from the canonical list on every
publish rather than patched incrementally, so they always match it and are
always sorted newest first.

ExportPublisher writes both exports to the blob store after each successful
append. Publishing is best effort: it is retried, and a publish that still
fails leaves the exports stale until the next one, without failing the
submission that triggered it.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import re
import zipfile
from datetime import datetime, timezone
from typing import Any, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.logging import Timer
from ..core.models import Submission
from ..storage.blob_store import BlobStore
from .query_service import sort_newest_first
from .record_store import RecordStore

logger = logging.getLogger(__name__)

# =============================================================================
# Layout
# =============================================================================

# (header label, record attribute, spreadsheet column width)
COLUMNS: tuple[tuple[str, str, int], ...] = (
    ("ID", "id", 5),
    ("Name", "name", 20),
    ("Age", "age", 5),
    ("Gender", "gender", 10),
    ("City", "city", 15),
    ("Contact (Email/Mobile)", "contact", 30),
    ("Perfect First Date", "answer1", 40),
    ("Random Thing That Makes You Laugh", "answer2", 40),
    ("Describe Your Vibe", "answer3", 40),
    ("Biggest Ick", "answer4", 40),
    ("Submission Date", "submission_date", 25),
    ("Created At", "created_at", 25),
)

HEADERS = [label for label, _, _ in COLUMNS]

SHEET_TITLE = "Submissions"
UTF8_BOM = "\ufeff"

CSV_BLOB = "wingmann_submissions.csv"
XLSX_BLOB = "wingmann_submissions.xlsx"

CSV_CONTENT_TYPE = "text/csv; charset=utf-8"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Fallback workbook timestamp for an empty export
_EPOCH = datetime(2000, 1, 1)
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_MODIFIED_RE = re.compile(rb"(<dcterms:modified[^>]*>)[^<]*(</dcterms:modified>)")


def _row(record: Submission) -> list[Any]:
    return [getattr(record, attr) for _, attr, _ in COLUMNS]


# =============================================================================
# CSV
# =============================================================================


def render_csv(records: Sequence[Submission]) -> bytes:
    """
    Render the delimited-text export.

    Fields containing a comma, quote or line break are quoted with inner
    quotes doubled. Rows are separated by a bare newline with none after
    the last row. The output starts with a UTF-8 BOM so spreadsheet tools
    detect the encoding.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(HEADERS)
    for record in sort_newest_first(records):
        writer.writerow(_row(record))

    content = buffer.getvalue()
    if content.endswith("\n"):
        content = content[:-1]
    return (UTF8_BOM + content).encode("utf-8")


# =============================================================================
# XLSX
# =============================================================================


def _workbook_timestamp(ordered: Sequence[Submission]) -> datetime:
    """Newest created_at as a naive UTC datetime, so metadata tracks content."""
    if not ordered:
        return _EPOCH
    try:
        newest = datetime.fromisoformat(ordered[0].created_at)
    except ValueError:
        return _EPOCH
    if newest.tzinfo is not None:
        newest = newest.astimezone(timezone.utc).replace(tzinfo=None)
    return newest.replace(microsecond=0)


def _pin_archive(raw: bytes, stamp: datetime) -> bytes:
    """
    Rewrite the xlsx zip with fixed entry timestamps and a fixed
    docProps modified date. openpyxl stamps both with the wall clock.
    """
    pinned_modified = stamp.strftime("%Y-%m-%dT%H:%M:%SZ").encode("ascii")
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(raw)) as source:
        with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as target:
            for info in source.infolist():
                data = source.read(info.filename)
                if info.filename == "docProps/core.xml":
                    data = _MODIFIED_RE.sub(rb"\g<1>" + pinned_modified + rb"\g<2>", data)
                entry = zipfile.ZipInfo(info.filename, date_time=_ZIP_DATE_TIME)
                entry.compress_type = zipfile.ZIP_DEFLATED
                entry.external_attr = 0o600 << 16
                target.writestr(entry, data)
    return out.getvalue()


def render_xlsx(records: Sequence[Submission]) -> bytes:
    """
    Render the spreadsheet export: a single "Submissions" sheet with the
    same columns and order as the CSV and fixed column widths.

    Text that looks like a formula is stored as plain text.
    """
    ordered = sort_newest_first(records)
    stamp = _workbook_timestamp(ordered)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = SHEET_TITLE
    workbook.properties.creator = "wingmann"
    workbook.properties.created = stamp
    workbook.properties.modified = stamp

    sheet.append(HEADERS)
    for row_index, record in enumerate(ordered, start=2):
        for col_index, value in enumerate(_row(record), start=1):
            if isinstance(value, str):
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
            cell = sheet.cell(row=row_index, column=col_index, value=value)
            if isinstance(value, str) and value.startswith("="):
                cell.data_type = "s"

    for col_index, (_, _, width) in enumerate(COLUMNS, start=1):
        sheet.column_dimensions[get_column_letter(col_index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return _pin_archive(buffer.getvalue(), stamp)


# =============================================================================
# Publishing
# =============================================================================


class ExportWriteError(Exception):
    """A derived export could not be written to the blob store."""


class ExportPublisher:
    """
    Rebuilds both exports from the canonical list and writes them.

    Publishes are serialized, and each one re-reads the canonical list, so
    the last publish to finish always reflects the newest data.
    """

    def __init__(
        self,
        store: RecordStore,
        blobs: BlobStore,
        max_attempts: int = 3,
        min_wait: float = 0.2,
        max_wait: float = 2.0,
    ):
        self._store = store
        self._blobs = blobs
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self._lock = asyncio.Lock()
        self.stale = False

    async def _publish_once(self) -> int:
        records = await self._store.read_all()
        # Rendering is CPU-bound; keep it off the event loop
        csv_data, xlsx_data = await asyncio.gather(
            asyncio.to_thread(render_csv, records),
            asyncio.to_thread(render_xlsx, records),
        )
        outputs = (
            (CSV_BLOB, csv_data, CSV_CONTENT_TYPE),
            (XLSX_BLOB, xlsx_data, XLSX_CONTENT_TYPE),
        )
        for name, data, content_type in outputs:
            if not await self._blobs.write(name, data, content_type):
                raise ExportWriteError(f"Failed to write {name}")
        return len(records)

    async def publish(self) -> bool:
        """
        Regenerate and persist both exports.

        Returns True on success. Never raises: after the final failed
        attempt the publisher is marked stale and the error is logged.
        """
        async with self._lock:
            with Timer() as timer:
                try:
                    async for attempt in AsyncRetrying(
                        retry=retry_if_exception_type(ExportWriteError),
                        stop=stop_after_attempt(self.max_attempts),
                        wait=wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait),
                        before_sleep=before_sleep_log(logger, logging.WARNING),
                        reraise=True,
                    ):
                        with attempt:
                            count = await self._publish_once()
                except Exception as e:
                    self.stale = True
                    logger.error(
                        f"Export regeneration failed, exports are stale: {e}",
                        extra={"status": "stale", "duration_ms": round(timer.elapsed_ms, 2)},
                        exc_info=not isinstance(e, ExportWriteError),
                    )
                    return False

            self.stale = False
            logger.info(
                f"CSV and Excel exports updated ({count} submissions)",
                extra={"count": count, "duration_ms": round(timer.elapsed_ms, 2)},
            )
            return True
