"""
core/snapshot.py
----------------
Immutable view of the cached data for one identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from core.schemas import Course, Preferences, StudyProgram


@dataclass(frozen=True)
class Snapshot:
    courses: Tuple[Course, ...] = ()
    study_programs: Tuple[StudyProgram, ...] = ()
    preferences: Optional[Preferences] = None
    loading: bool = False
    errors: Dict[str, str] = field(default_factory=dict)
    version: int = 0

    def program(self, program_id: str) -> Optional[StudyProgram]:
        for p in self.study_programs:
            if p.id == program_id:
                return p
        return None

    def course(self, course_id: str) -> Optional[Course]:
        for c in self.courses:
            if c.id == course_id:
                return c
        return None

    def courses_for(self, program_id: str) -> Tuple[Course, ...]:
        return tuple(c for c in self.courses if c.program_id == program_id)

    @property
    def is_empty(self) -> bool:
        return not self.courses and not self.study_programs
