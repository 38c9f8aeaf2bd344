"""Per-student course averages and status bands.

Everything in here is a pure function of the objects passed in: a course with
its ``assessments``, each carrying ``max_marks`` and ``marks`` (``student_id``,
``score``, ``comment``). Nothing touches the session, so the same code serves
the roster, the student dashboard and the course detail view.

Averages are weighted: the sum of a student's scores over the sum of the
``max_marks`` of the assessments they were marked on.
"""
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

from config import Config
from errors import InvalidArgument, NotFound

PASSING = "passing"
AT_RISK = "at_risk"
FAILING = "failing"

AcademicPeriod = namedtuple("AcademicPeriod", ["academic_year", "term"])

_TWO_PLACES = Decimal("0.01")


def round_pct(value) -> float:
    """Round half-up to 2 decimal places (66.665 -> 66.67)."""
    return float(Decimal(str(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def classify_status(average, thresholds=None) -> str:
    thresholds = thresholds or Config.STATUS_THRESHOLDS
    if average >= thresholds["passing"]:
        return PASSING
    if average >= thresholds["at_risk"]:
        return AT_RISK
    return FAILING


def in_period(assessment, period) -> bool:
    if period is None:
        return True
    return assessment.academic_year == period.academic_year and assessment.term == period.term


def find_mark(assessment, student_id):
    """The mark ``student_id`` holds on ``assessment``, or None."""
    for mark in assessment.marks:
        if mark.student_id == student_id:
            return mark
    return None


def _assessment_result(assessment, mark):
    created_at = assessment.created_at
    return {
        "id": assessment.id,
        "name": assessment.name,
        "type": assessment.type,
        "maxMarks": assessment.max_marks,
        "score": mark.score,
        "comment": mark.comment or "",
        "createdAt": created_at.isoformat() if created_at else None,
        "_sort_key": created_at,
    }


def compute_student_course_average(course, student_id, period=None, thresholds=None):
    """Summarise one student's marks in one course.

    Returns ``{"average", "status", "count", "items"}``. ``items`` are the
    assessment results, most recently created first; equal timestamps keep the
    course order.
    """
    if course is None:
        raise NotFound("Course not found")

    total_score = Decimal(0)
    total_max = Decimal(0)
    items = []

    for assessment in course.assessments:
        if not in_period(assessment, period):
            continue
        if assessment.max_marks is None or assessment.max_marks <= 0:
            raise InvalidArgument(f"Assessment {assessment.id} has no positive max marks")

        mark = find_mark(assessment, student_id)
        if mark is None:
            continue

        total_score += Decimal(str(mark.score))
        total_max += Decimal(str(assessment.max_marks))
        items.append(_assessment_result(assessment, mark))

    average = round_pct(total_score / total_max * 100) if total_max > 0 else 0.0

    # sorted() is stable, including with reverse=True
    items = sorted(
        items,
        key=lambda r: (r["_sort_key"] is not None, r["_sort_key"] or 0),
        reverse=True,
    )
    for item in items:
        del item["_sort_key"]

    return {
        "average": average,
        "status": classify_status(average, thresholds),
        "count": len(items),
        "items": items,
    }


def compute_course_roster(course, period=None, thresholds=None):
    """One summary per enrolled student, in enrollment order."""
    if course is None:
        raise NotFound("Course not found")

    roster = []
    for student in course.students:
        summary = compute_student_course_average(course, student.id, period, thresholds)
        roster.append({
            "student": student,
            "average": summary["average"],
            "status": summary["status"],
            "count": summary["count"],
        })
    return roster
