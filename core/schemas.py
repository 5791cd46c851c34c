"""
core/schemas.py
---------------
Typed row shapes for the three store collections.

Field names are the storage contract (Supabase schema) and must not be renamed:

    courses         : course_code, program_id, grade, semesters, credits,
                      finished, tags, editor_state
    study_programs  : degree, institution, semesters, current_semester,
                      finished, credits, description
    preferences     : grade_min, grade_max, grade_passed, grade_include_failed

Store adapters parse every row through `parse_rows` / `parse_row` so that a
malformed row is rejected at the adapter boundary (as `RemoteFailure`) instead
of leaking untyped data into the analytics layer.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.errors import RemoteFailure


# --------------------------------------------------------------------------- #
# Collections
# --------------------------------------------------------------------------- #

COURSES = "courses"
STUDY_PROGRAMS = "study_programs"
PREFERENCES = "preferences"

COLLECTIONS = (COURSES, STUDY_PROGRAMS, PREFERENCES)


class Degree(str, Enum):
    BACHELOR = "Bachelor"
    MASTER = "Master"
    PHD = "Phd"
    ASSOCIATE = "Associate"
    DIPLOMA = "Diploma"
    CERTIFICATE = "Certificate"
    OTHER = "Other"


DEFAULT_PREFERENCES: Dict[str, Any] = {
    "grade_min": 1.0,
    "grade_max": 5.0,
    "grade_passed": 4.0,
    "grade_include_failed": False,
}


NOTES_FORMAT = "markdown"


def markdown_notes(text: str) -> Dict[str, Any]:
    """Notes document as written by the courses page."""
    return {"format": NOTES_FORMAT, "content": text}


def notes_text(editor_state: Any) -> Optional[str]:
    """
    Editable text of a stored notes document.

    Returns None for documents of another editor (e.g. a rich-text JSON tree);
    those are shown read-only and never overwritten.
    """
    if editor_state is None:
        return ""
    if isinstance(editor_state, str):
        return editor_state
    if isinstance(editor_state, dict) and editor_state.get("format") == NOTES_FORMAT:
        return str(editor_state.get("content", ""))
    return None


def normalize_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Trim, drop blanks and de-duplicate case-insensitively (first spelling wins)."""
    if not tags:
        return []
    seen = set()
    out: List[str] = []
    for raw in tags:
        tag = str(raw).strip()
        if not tag:
            continue
        key = tag.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(tag)
    return out


# --------------------------------------------------------------------------- #
# Row models
# --------------------------------------------------------------------------- #

class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    user_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v: Any) -> Any:
        # uuid.UUID coming back from some drivers
        return str(v) if v is not None and not isinstance(v, str) else v


class StudyProgram(_Row):
    """A degree program with a semester plan and a credit target."""

    name: str
    degree: Degree = Degree.OTHER
    institution: str = ""
    semesters: int = Field(ge=1)
    current_semester: int = Field(default=1, ge=1)
    finished: bool = False
    credits: float = Field(default=0.0, ge=0)
    description: Optional[str] = None

    @model_validator(mode="after")
    def _semester_in_plan(self) -> "StudyProgram":
        if self.current_semester > self.semesters:
            raise ValueError(f"current_semester {self.current_semester} exceeds semesters {self.semesters}")
        return self


class Course(_Row):
    """A single course booked into a program."""

    program_id: str
    course_code: str = ""
    name: str
    credits: float = Field(default=0.0, ge=0)
    grade: Optional[float] = None
    semesters: int = 1
    finished: bool = False
    tags: List[str] = Field(default_factory=list)
    editor_state: Optional[Any] = None

    @field_validator("program_id", mode="before")
    @classmethod
    def _stringify_program_id(cls, v: Any) -> Any:
        return str(v) if v is not None and not isinstance(v, str) else v

    @field_validator("course_code", mode="before")
    @classmethod
    def _code_or_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)


class Preferences(_Row):
    """Grading scale of one user. Lower grades are better."""

    grade_min: float = DEFAULT_PREFERENCES["grade_min"]
    grade_max: float = DEFAULT_PREFERENCES["grade_max"]
    grade_passed: float = DEFAULT_PREFERENCES["grade_passed"]
    grade_include_failed: bool = DEFAULT_PREFERENCES["grade_include_failed"]

    @model_validator(mode="after")
    def _ordered_scale(self) -> "Preferences":
        if not self.grade_min < self.grade_max:
            raise ValueError("grade_min must be below grade_max")
        if not self.grade_min <= self.grade_passed <= self.grade_max:
            raise ValueError("grade_passed must lie within the scale")
        return self


MODELS: Dict[str, Type[_Row]] = {
    COURSES: Course,
    STUDY_PROGRAMS: StudyProgram,
    PREFERENCES: Preferences,
}


# --------------------------------------------------------------------------- #
# Boundary parsing
# --------------------------------------------------------------------------- #

def parse_row(collection: str, row: Dict[str, Any]) -> _Row:
    """Parse a raw store row into its model or raise RemoteFailure."""
    model = MODELS[collection]
    try:
        return model.model_validate(row)
    except ValidationError as e:
        raise RemoteFailure(
            f"malformed row: {e.error_count()} validation error(s) "
            f"({e.errors()[0]['loc']}: {e.errors()[0]['msg']})",
            collection=collection,
            operation="parse",
        ) from e


def parse_rows(collection: str, rows: Optional[Iterable[Dict[str, Any]]]) -> List[Any]:
    """Parse a list of raw rows; one bad row rejects the whole batch."""
    return [parse_row(collection, row) for row in (rows or [])]

