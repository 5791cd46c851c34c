"""
core/validation.py
------------------
Input validation for every write the UI can issue.

All checks run before a store call: a `ValidationFailure` never reaches the
network layer. Each `validate_*` returns the clean payload to send (without
`user_id`, which the store adds), and each `validate_*_patch` validates the
patch merged onto the current row but returns only the patched keys.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from core.errors import ValidationFailure
from core.schemas import (
    DEFAULT_PREFERENCES,
    Course,
    Degree,
    Preferences,
    StudyProgram,
    normalize_tags,
)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ProgramInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    degree: Degree
    institution: str
    semesters: int
    current_semester: int = 1
    finished: bool = False
    credits: float = 0.0
    description: Optional[str] = None

    @field_validator("name", "institution", mode="before")
    @classmethod
    def _required_text(cls, v: Any) -> str:
        text = "" if v is None else str(v).strip()
        if not text:
            raise ValueError("is required")
        return text

    @field_validator("semesters")
    @classmethod
    def _positive_semesters(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive number")
        return v

    @field_validator("current_semester")
    @classmethod
    def _positive_current(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("credits")
    @classmethod
    def _credits_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be zero or greater")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _optional_description(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        return v.strip() if isinstance(v, str) else v


class CourseInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    program_id: str
    course_code: str = ""
    name: str
    credits: float = 0.0
    grade: Optional[float] = None
    semesters: int = 1
    finished: bool = False
    tags: List[str] = []
    editor_state: Optional[Any] = None

    @field_validator("program_id", "name", mode="before")
    @classmethod
    def _required_text(cls, v: Any) -> str:
        text = "" if v is None else str(v).strip()
        if not text:
            raise ValueError("is required")
        return text

    @field_validator("course_code", mode="before")
    @classmethod
    def _code(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("credits")
    @classmethod
    def _credits_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be zero or greater")
        return v

    @field_validator("grade", mode="before")
    @classmethod
    def _optional_grade(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("semesters")
    @classmethod
    def _positive_semesters(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive number")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> List[str]:
        if isinstance(v, str):
            v = v.split(",")
        return normalize_tags(v)


class PreferencesInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    grade_min: float
    grade_max: float
    grade_passed: float
    grade_include_failed: bool = False


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #

def _parse(model: Type[BaseModel], data: Mapping[str, Any]) -> BaseModel:
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "input"
            msg = err["msg"]
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, "):]
            errors.setdefault(field, msg)
        raise ValidationFailure(errors) from e


def _grade_scale(preferences: Optional[Preferences]) -> tuple[float, float]:
    if preferences is None:
        return DEFAULT_PREFERENCES["grade_min"], DEFAULT_PREFERENCES["grade_max"]
    return preferences.grade_min, preferences.grade_max


def _current_values(row: Optional[BaseModel], fields: Mapping[str, Any]) -> Dict[str, Any]:
    if row is None:
        return {}
    return {k: getattr(row, k) for k in fields if hasattr(row, k)}


# --------------------------------------------------------------------------- #
# Study programs
# --------------------------------------------------------------------------- #

def validate_program(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate a new/edited program form and return the store payload."""
    program = _parse(ProgramInput, data)
    if program.current_semester > program.semesters:
        raise ValidationFailure.single(
            "current_semester",
            f"must be between 1 and {program.semesters}",
        )
    return program.model_dump(mode="json")


def validate_program_patch(current: StudyProgram, patch: Mapping[str, Any]) -> Dict[str, Any]:
    merged = {**_current_values(current, ProgramInput.model_fields), **dict(patch)}
    clean = validate_program(merged)
    return {k: clean[k] for k in patch if k in clean}


# --------------------------------------------------------------------------- #
# Courses
# --------------------------------------------------------------------------- #

def validate_course(
    data: Mapping[str, Any],
    preferences: Optional[Preferences] = None,
) -> Dict[str, Any]:
    """Validate a course form; the grade must sit inside the user's scale."""
    course = _parse(CourseInput, data)
    if course.grade is not None:
        lo, hi = _grade_scale(preferences)
        if not lo <= course.grade <= hi:
            raise ValidationFailure.single("grade", f"must be between {lo:g} and {hi:g}")
    payload = course.model_dump(mode="json")
    # opaque document, keep the caller's object untouched
    payload["editor_state"] = course.editor_state
    return payload


def validate_course_patch(
    current: Course,
    patch: Mapping[str, Any],
    preferences: Optional[Preferences] = None,
) -> Dict[str, Any]:
    merged = {**_current_values(current, CourseInput.model_fields), **dict(patch)}
    clean = validate_course(merged, preferences)
    return {k: clean[k] for k in patch if k in clean}


# --------------------------------------------------------------------------- #
# Preferences
# --------------------------------------------------------------------------- #

def validate_preferences(data: Mapping[str, Any]) -> Dict[str, Any]:
    prefs = _parse(PreferencesInput, {**DEFAULT_PREFERENCES, **dict(data)})
    if prefs.grade_min >= prefs.grade_max:
        raise ValidationFailure.single("grade_max", "must be greater than the minimum grade")
    if not prefs.grade_min <= prefs.grade_passed <= prefs.grade_max:
        raise ValidationFailure.single(
            "grade_passed",
            f"must be between {prefs.grade_min:g} and {prefs.grade_max:g}",
        )
    return prefs.model_dump(mode="json")
