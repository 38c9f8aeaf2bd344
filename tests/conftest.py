import itertools

import pytest

from app import create_app
from config import TestConfig
from models import db

_emails = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


class Api:
    """Small wrapper around the test client for the calls most tests repeat."""

    def __init__(self, client):
        self.client = client

    def register(self, role="teacher", level=None, first_name="Test", last_name="User",
                 password="secret123", email=None):
        if role == "student" and level is None:
            level = "Level 3"
        payload = {
            "firstName": first_name,
            "lastName": last_name,
            "email": email or f"user{next(_emails)}@school.test",
            "password": password,
            "role": role,
        }
        if level:
            payload["level"] = level
        resp = self.client.post("/auth/register", json=payload)
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        return {
            "id": body["user"]["id"],
            "token": body["token"],
            "headers": auth_headers(body["token"]),
            "email": payload["email"],
        }

    def teacher(self, **kwargs):
        return self.register(role="teacher", **kwargs)

    def student(self, level="Level 3", **kwargs):
        return self.register(role="student", level=level, **kwargs)

    def create_course(self, teacher, name="Mathematics", level="Level 3"):
        resp = self.client.post("/teachers/courses", json={"name": name, "level": level},
                                headers=teacher["headers"])
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()

    def enroll(self, teacher, course_id, student_id):
        return self.client.post(f"/teachers/courses/{course_id}/students",
                                json={"studentId": student_id}, headers=teacher["headers"])

    def create_assessment(self, teacher, course_id, max_marks=100, marks=None, name="Quiz",
                          type="Formative", academic_year="2025-2026", term="1st Term"):
        payload = {
            "name": name,
            "type": type,
            "courseId": course_id,
            "maxMarks": max_marks,
            "marks": marks or [],
        }
        if academic_year:
            payload["academicYear"] = academic_year
        if term:
            payload["term"] = term
        return self.client.post("/assessments", json=payload, headers=teacher["headers"])


@pytest.fixture
def api(client):
    return Api(client)
