"""Row parsing at the store boundary."""
import uuid

import pytest

from core.errors import RemoteFailure
from core.schemas import (
    COURSES,
    PREFERENCES,
    STUDY_PROGRAMS,
    Degree,
    markdown_notes,
    normalize_tags,
    notes_text,
    parse_row,
    parse_rows,
)


def course_row(**kw):
    row = {
        "id": "c1",
        "user_id": "u1",
        "created_at": "2024-02-01T10:00:00+00:00",
        "program_id": "p1",
        "course_code": None,
        "name": "Databases",
        "credits": 6,
        "grade": 1.7,
        "semesters": 2,
        "finished": True,
        "tags": ["DB", " sql ", "db", ""],
        "editor_state": {"root": {"children": []}},
        "some_new_column": 1,
    }
    row.update(kw)
    return row


def test_course_row_parses_and_normalizes():
    course = parse_row(COURSES, course_row())
    assert course.course_code == ""
    assert course.tags == ["DB", "sql"]
    assert course.editor_state == {"root": {"children": []}}
    assert course.created_at.year == 2024


def test_uuid_ids_are_stringified():
    pid = uuid.uuid4()
    course = parse_row(COURSES, course_row(id=pid, program_id=pid))
    assert course.id == str(pid)
    assert course.program_id == str(pid)


def test_malformed_row_rejected_with_context():
    with pytest.raises(RemoteFailure) as exc:
        parse_row(COURSES, course_row(credits=-1))
    assert exc.value.collection == COURSES
    assert exc.value.operation == "parse"


def test_one_bad_row_rejects_batch():
    with pytest.raises(RemoteFailure):
        parse_rows(COURSES, [course_row(), course_row(name=None)])


def test_program_degree_enum():
    program = parse_row(
        STUDY_PROGRAMS,
        {
            "id": "p1",
            "user_id": "u1",
            "created_at": "2024-02-01T10:00:00Z",
            "name": "Physics",
            "degree": "Master",
            "institution": "Uni",
            "semesters": 4,
        },
    )
    assert program.degree is Degree.MASTER
    assert program.current_semester == 1


def test_normalize_tags_first_spelling_wins():
    assert normalize_tags(["Math", "math", " MATH ", "Stats"]) == ["Math", "Stats"]
    assert normalize_tags(None) == []


def test_program_past_its_plan_is_rejected():
    row = {
        "id": "p1",
        "user_id": "u1",
        "created_at": "2024-02-01T10:00:00Z",
        "name": "Physics",
        "semesters": 6,
        "current_semester": 7,
    }
    with pytest.raises(RemoteFailure) as exc:
        parse_row(STUDY_PROGRAMS, row)
    assert exc.value.operation == "parse"
    assert "exceeds semesters" in str(exc.value)

    row["current_semester"] = 6
    assert parse_row(STUDY_PROGRAMS, row).current_semester == 6


@pytest.mark.parametrize(
    "scale",
    [
        {"grade_min": 5.0, "grade_max": 1.0, "grade_passed": 4.0},
        {"grade_min": 1.0, "grade_max": 1.0, "grade_passed": 1.0},
        {"grade_min": 1.0, "grade_max": 5.0, "grade_passed": 5.5},
        {"grade_min": 1.0, "grade_max": 5.0, "grade_passed": 0.5},
    ],
)
def test_preferences_scale_must_be_ordered(scale):
    row = {"id": "pr1", "user_id": "u1", "created_at": "2024-02-01T10:00:00Z", **scale}
    with pytest.raises(RemoteFailure):
        parse_row(PREFERENCES, row)


def test_preferences_pass_mark_on_scale_edge_is_fine():
    row = {
        "id": "pr1",
        "user_id": "u1",
        "created_at": "2024-02-01T10:00:00Z",
        "grade_min": 1.0,
        "grade_max": 6.0,
        "grade_passed": 6.0,
    }
    assert parse_row(PREFERENCES, row).grade_passed == 6.0


@pytest.mark.parametrize(
    "document, expected",
    [
        (None, ""),
        ("plain text", "plain text"),
        (markdown_notes("# Week 1"), "# Week 1"),
        ({"root": {"children": [], "type": "root"}}, None),
        ({"format": "html", "content": "<p>x</p>"}, None),
    ],
)
def test_notes_text_only_for_editable_documents(document, expected):
    assert notes_text(document) == expected
