"""Grade bands, per-semester averages and credits over time."""
import pytest

from analytics.grade_stats import (
    band_index,
    credits_over_time,
    grade_bands,
    grade_distribution,
    semester_averages,
)
from conftest import make_course, make_prefs, months_later


def test_default_scale_has_four_bands():
    assert grade_bands() == [(1.0, 2.0), (2.0, 3.0), (3.0, 4.0), (4.0, 5.0)]


def test_fractional_span_ends_with_narrow_band():
    bands = grade_bands(make_prefs(grade_min=1.0, grade_max=3.5, grade_passed=3.0))
    assert bands[-1] == (3.0, 3.5)


@pytest.mark.parametrize(
    "grade, expected",
    [(1.0, 0), (1.99, 0), (2.0, 1), (4.0, 3), (5.0, 3), (0.2, 0), (6.0, 3)],
)
def test_band_index_half_open_and_clamped(grade, expected):
    assert band_index(grade) == expected


SHIFTED_SCALE = {"grade_min": 1.3, "grade_max": 5.3, "grade_passed": 4.3}


@pytest.mark.parametrize(
    "grade, expected",
    [(1.3, 0), (2.3, 1), (3.29, 1), (3.3, 2), (4.3, 3), (5.3, 3)],
)
def test_band_edges_on_fractional_scale(grade, expected):
    assert band_index(grade, make_prefs(**SHIFTED_SCALE)) == expected


def test_distribution_on_fractional_scale_matches_band_index():
    prefs = make_prefs(**SHIFTED_SCALE)
    grades = [2.3, 3.3, 4.3, 5.3]
    distribution = grade_distribution([make_course(grade=g, credits=1) for g in grades], prefs)
    assert [row["count"] for row in distribution] == [0, 1, 1, 2]


def test_every_graded_course_lands_in_exactly_one_band():
    grades = [1.0, 1.3, 2.0, 2.7, 3.3, 4.0, 4.7, 5.0, 0.5, 5.5]
    courses = [make_course(grade=g, credits=1) for g in grades] + [make_course(grade=None)]
    distribution = grade_distribution(courses)

    assert sum(row["count"] for row in distribution) == len(grades)
    assert [row["count"] for row in distribution] == [3, 2, 1, 4]
    assert distribution[0]["band"] == "[1, 2)"
    assert distribution[-1]["band"] == "[4, 5]"


def test_distribution_of_nothing_keeps_empty_bands():
    distribution = grade_distribution([])
    assert len(distribution) == 4
    assert all(row["count"] == 0 for row in distribution)


def test_semester_averages_weighted_and_sorted():
    courses = [
        make_course(semesters=2, grade=2.0, credits=5),
        make_course(semesters=1, grade=1.0, credits=10),
        make_course(semesters=1, grade=4.0, credits=5),
        make_course(semesters=3, grade=None, credits=5),
        make_course(semesters=3, grade=1.0, credits=0),
    ]
    rows = semester_averages(courses)
    assert [r["semester"] for r in rows] == [1, 2]
    assert rows[0]["average"] == 2.0
    assert rows[0]["course_count"] == 2
    assert rows[1]["average"] == 2.0


def test_semester_averages_empty():
    assert semester_averages([]) == []


def test_credits_over_time_cumulative():
    courses = [
        make_course(credits=5, created_at=months_later(2)),
        make_course(credits=10),
        make_course(credits=2.5),
    ]
    rows = credits_over_time(courses)
    assert [r["month"] for r in rows] == ["2024-01", "2024-03"]
    assert [r["credits"] for r in rows] == [12.5, 5.0]
    assert rows[-1]["cumulative"] == 17.5
