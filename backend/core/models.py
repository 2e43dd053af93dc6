"""
Wingmann Engine - Data Models

Submission is the canonical stored record. SubmissionPayload mirrors the
JSON the questionnaire posts to /api/submit; its fields are all optional so
that missing data is reported by the submission service as a 400 naming
the absent fields, rather than rejected during parsing.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _stringify(value: Any) -> Any:
    # Questionnaire clients sometimes post age as a number
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# =============================================================================
# Stored record
# =============================================================================


class Submission(BaseModel):
    """One completed questionnaire, as persisted in the canonical store."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    age: str = ""
    gender: str = ""
    city: str = ""
    contact: str = ""
    answer1: str = ""
    answer2: str = ""
    answer3: str = ""
    answer4: str = ""
    submission_date: str = ""
    created_at: str = ""

    @field_validator(
        "name",
        "age",
        "gender",
        "city",
        "contact",
        "answer1",
        "answer2",
        "answer3",
        "answer4",
        "submission_date",
        "created_at",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return _stringify(value)


# =============================================================================
# Inbound payload
# =============================================================================


class PersonalInfo(BaseModel):
    name: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    contact: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _stringify(value)


class Answers(BaseModel):
    question1: Optional[str] = None
    question2: Optional[str] = None
    question3: Optional[str] = None
    question4: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _stringify(value)


class SubmissionPayload(BaseModel):
    """Body of POST /api/submit."""

    model_config = ConfigDict(populate_by_name=True)

    personal_info: Optional[PersonalInfo] = Field(default=None, alias="personalInfo")
    answers: Optional[Answers] = None
    submission_date: Optional[str] = Field(default=None, alias="submissionDate")


# Required fields in the order they are reported when missing
PERSONAL_FIELDS = ("name", "age", "gender", "city", "contact")
ANSWER_FIELDS = ("question1", "question2", "question3", "question4")
