# database/models.py
"""
SQLAlchemy tables mirroring the hosted Supabase schema column for column,
so rows read from the local store parse into the same pydantic models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text

# Important: must match Base from db_setup.py
from .db_setup import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StudyProgramRecord(Base):
    __tablename__ = "study_programs"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    degree = Column(String(32), nullable=False, default="Other")
    institution = Column(String(200), nullable=False, default="")
    semesters = Column(Integer, nullable=False)
    current_semester = Column(Integer, nullable=False, default=1)
    finished = Column(Boolean, nullable=False, default=False)
    credits = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now)

    def __repr__(self):
        return f"<StudyProgramRecord(id={self.id}, name={self.name}, user_id={self.user_id})>"


class CourseRecord(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    program_id = Column(String(36), ForeignKey("study_programs.id", ondelete="CASCADE"), nullable=False)
    course_code = Column(String(64), nullable=False, default="")
    name = Column(String(200), nullable=False)
    credits = Column(Float, nullable=False, default=0.0)
    grade = Column(Float, nullable=True)
    semesters = Column(Integer, nullable=False, default=1)
    finished = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)
    editor_state = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now)

    def __repr__(self):
        return f"<CourseRecord(id={self.id}, code={self.course_code}, program_id={self.program_id})>"


class PreferencesRecord(Base):
    __tablename__ = "preferences"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, unique=True)
    grade_min = Column(Float, nullable=False, default=1.0)
    grade_max = Column(Float, nullable=False, default=5.0)
    grade_passed = Column(Float, nullable=False, default=4.0)
    grade_include_failed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now)

    def __repr__(self):
        return f"<PreferencesRecord(user_id={self.user_id})>"


TABLES = {
    "study_programs": StudyProgramRecord,
    "courses": CourseRecord,
    "preferences": PreferencesRecord,
}
