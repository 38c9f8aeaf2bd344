"""Dashboard payloads for teachers and students.

Thin layer over :mod:`performance`: it walks the caller's courses, asks the
aggregation functions for numbers and shapes the JSON the front end expects.
"""
from datetime import date

from config import Config
from performance import (
    compute_course_roster, compute_student_course_average, in_period,
)


def teacher_dashboard(teacher, period, levels=None):
    """Owned courses grouped by level, with distinct student counts per level."""
    levels = levels or Config.LEVELS
    payload = {}
    for level in levels:
        courses = [c for c in teacher.owned_courses if c.level == level]
        student_ids = {e.student_id for c in courses for e in c.enrollments}
        payload[level] = {
            "courseCount": len(courses),
            "studentCount": len(student_ids),
            "courses": [
                {
                    "id": c.id,
                    "name": c.name,
                    "studentCount": len(c.enrollments),
                    "assessmentCount": sum(1 for a in c.assessments if in_period(a, period)),
                }
                for c in courses
            ],
        }
    return payload


def student_course_summary(student, course, period=None):
    summary = compute_student_course_average(course, student.id, period)
    return {
        "average": summary["average"],
        "status": summary["status"],
        "totalAssessments": summary["count"],
        "assessments": summary["items"],
    }


def student_dashboard(student, period):
    rows = []
    for course in student.courses:
        row = {"id": course.id, "name": course.name, "level": course.level}
        row.update(student_course_summary(student, course, period))
        rows.append(row)
    return rows


def student_course_detail(student, course, period=None):
    payload = {"course": {"id": course.id, "name": course.name, "level": course.level}}
    payload.update(student_course_summary(student, course, period))
    return payload


def course_roster_payload(course, period=None):
    rows = []
    for entry in compute_course_roster(course, period):
        row = entry["student"].to_summary()
        row.update({
            "level": entry["student"].level,
            "average": entry["average"],
            "status": entry["status"],
            "totalAssessments": entry["count"],
        })
        rows.append(row)
    return rows


# ---- Academic calendar

def academic_year_for(today: date) -> str:
    """Academic years roll over in September: 2025-10-01 -> '2025-2026'."""
    start = today.year if today.month >= 9 else today.year - 1
    return f"{start}-{start + 1}"


def term_for(today: date) -> str:
    month = today.month
    if 1 <= month <= 3:
        return Config.TERMS[1]
    if 4 <= month <= 7:
        return Config.TERMS[2]
    # Sep-Dec, and August before the new year starts
    return Config.TERMS[0]


def academic_info(today=None):
    today = today or date.today()
    year = today.year
    return {
        "currentAcademicYear": academic_year_for(today),
        "currentTerm": term_for(today),
        "academicYears": [f"{y}-{y + 1}" for y in (year - 1, year, year + 1)],
        "terms": list(Config.TERMS),
    }
