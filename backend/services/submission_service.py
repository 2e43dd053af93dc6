"""
Wingmann Engine - Submission Service

Intake for completed questionnaires:

    Received -> Validated -> Appended -> Exported -> Acknowledged

Failure exits:
    ValidationFailed   (400) - a group or field is missing; nothing stored
    PersistenceFailed  (500) - canonical write failed; exports untouched

Export regeneration runs after a durable append and never fails the
submission: the canonical JSON is the hard requirement, the derived files
are best effort.
"""

from __future__ import annotations

import logging

from ..core.errors import ErrorDetail, ValidationError
from ..core.logging import LogContext
from ..core.models import ANSWER_FIELDS, PERSONAL_FIELDS, Submission, SubmissionPayload
from .exports import ExportPublisher
from .record_store import RecordStore

logger = logging.getLogger(__name__)


def _missing_detail(group: str, field: str) -> ErrorDetail:
    return ErrorDetail(field=f"{group}.{field}", message="Field is required", code="missing")


def validate_payload(payload: SubmissionPayload) -> dict[str, str]:
    """
    Check that every required field is present and non-empty.

    Returns:
        Record fields keyed by their stored names (answer1..answer4)

    Raises:
        ValidationError: listing each missing field
    """
    if payload.personal_info is None or payload.answers is None:
        details = []
        if payload.personal_info is None:
            details.append(
                ErrorDetail(field="personalInfo", message="Group is required", code="missing")
            )
        if payload.answers is None:
            details.append(ErrorDetail(field="answers", message="Group is required", code="missing"))
        raise ValidationError("Missing required data", details=details)

    info = payload.personal_info
    answers = payload.answers

    details = [
        _missing_detail("personalInfo", field)
        for field in PERSONAL_FIELDS
        if not getattr(info, field)
    ]
    details += [
        _missing_detail("answers", field)
        for field in ANSWER_FIELDS
        if not getattr(answers, field)
    ]
    if details:
        raise ValidationError("All fields are required", details=details)

    fields = {field: getattr(info, field) for field in PERSONAL_FIELDS}
    for index, field in enumerate(ANSWER_FIELDS, start=1):
        fields[f"answer{index}"] = getattr(answers, field)
    return fields


class SubmissionService:
    """Validates, stores and exports incoming submissions."""

    def __init__(self, store: RecordStore, publisher: ExportPublisher):
        self.store = store
        self.publisher = publisher

    async def submit(self, payload: SubmissionPayload) -> Submission:
        """
        Store one submission and refresh the exports.

        Raises:
            ValidationError: required data missing (nothing is stored)
            StorageWriteError: canonical write failed (exports not touched)
        """
        fields = validate_payload(payload)

        record = await self.store.append(fields, submission_date=payload.submission_date)

        with LogContext(submission_id=record.id):
            logger.info(f"New submission received: {record.name}")
            if not await self.publisher.publish():
                logger.warning(
                    "Submission stored but exports are stale until the next publish",
                    extra={"submission_id": record.id},
                )

        return record
