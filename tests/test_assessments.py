import pytest

from models import Assessment, Mark


@pytest.fixture
def setup(api):
    teacher = api.teacher()
    s1, s2 = api.student(), api.student()
    course = api.create_course(teacher)
    api.enroll(teacher, course["id"], s1["id"])
    api.enroll(teacher, course["id"], s2["id"])
    return {"teacher": teacher, "s1": s1, "s2": s2, "course": course}


def scores(assessment_json):
    return {m["student"] if isinstance(m["student"], int) else m["student"]["id"]: m["score"]
            for m in assessment_json["marks"]}


def test_create_assessment_links_to_course(api, client, setup):
    t, course = setup["teacher"], setup["course"]
    resp = api.create_assessment(t, course["id"], max_marks=40, name="Essay", type="Summative",
                                 marks=[{"studentId": setup["s1"]["id"], "score": 31, "comment": " Nice "}])
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["name"] == "Essay"
    assert body["type"] == "Summative"
    assert body["course"] == course["id"]
    assert body["maxMarks"] == 40
    assert body["academicYear"] == "2025-2026"
    assert body["term"] == "1st Term"
    assert body["marks"][0]["comment"] == "Nice"

    listed = client.get(f"/assessments/course/{course['id']}", headers=t["headers"]).get_json()
    assert [a["id"] for a in listed] == [body["id"]]
    assert listed[0]["marks"][0]["student"]["id"] == setup["s1"]["id"]


def test_create_assessment_without_period(api, setup):
    resp = api.create_assessment(setup["teacher"], setup["course"]["id"], academic_year=None, term=None)
    assert resp.status_code == 201
    assert resp.get_json()["academicYear"] is None
    assert resp.get_json()["term"] is None


def test_create_assessment_clamps_scores_to_max(api, setup):
    resp = api.create_assessment(setup["teacher"], setup["course"]["id"], max_marks=20,
                                 marks=[{"studentId": setup["s1"]["id"], "score": 35}])
    assert resp.status_code == 201
    assert scores(resp.get_json()) == {setup["s1"]["id"]: 20}


def test_create_assessment_validation_lists_every_field(api, client, setup):
    resp = client.post("/assessments", json={
        "name": "", "type": "Quiz", "courseId": setup["course"]["id"], "maxMarks": 0, "term": "4th Term",
    }, headers=setup["teacher"]["headers"])
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert {"name", "type", "maxMarks", "term"} <= set(errors)
    assert errors["maxMarks"] == ["Max marks must be a positive number"]


def test_create_assessment_rejects_bad_marks(api, setup):
    t, cid = setup["teacher"], setup["course"]["id"]
    s1 = setup["s1"]["id"]
    outsider = api.student()

    resp = api.create_assessment(t, cid, marks=[
        {"studentId": s1, "score": -1},
        {"score": 5},
        {"studentId": outsider["id"], "score": 5},
        "oops",
    ])
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert errors["marks[0].score"] == ["Score must be a non-negative number"]
    assert "marks[1].studentId" in errors
    assert errors["marks[2].studentId"] == ["Student is not enrolled in this course"]
    assert "marks[3]" in errors


def test_create_assessment_rejects_duplicate_students(api, setup):
    s1 = setup["s1"]["id"]
    resp = api.create_assessment(setup["teacher"], setup["course"]["id"],
                                 marks=[{"studentId": s1, "score": 1}, {"studentId": s1, "score": 2}])
    assert resp.status_code == 400
    assert "marks[1].studentId" in resp.get_json()["errors"]


def test_create_assessment_for_missing_course(api, client, setup):
    resp = client.post("/assessments", json={
        "name": "X", "type": "Formative", "courseId": 98765, "maxMarks": 10,
    }, headers=setup["teacher"]["headers"])
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Course not found"


def test_validation_failure_writes_nothing(app, api, setup):
    api.create_assessment(setup["teacher"], setup["course"]["id"],
                          marks=[{"studentId": setup["s1"]["id"], "score": -5}])
    with app.app_context():
        assert Assessment.query.count() == 0


def test_set_marks_replaces_previous_marks(api, client, setup):
    t = setup["teacher"]
    s1, s2 = setup["s1"]["id"], setup["s2"]["id"]
    created = api.create_assessment(t, setup["course"]["id"], max_marks=50,
                                    marks=[{"studentId": s1, "score": 10}, {"studentId": s2, "score": 20}]).get_json()

    resp = client.put(f"/assessments/{created['id']}/marks",
                      json={"marks": [{"studentId": s1, "score": 45}, {"studentId": s2, "score": 70}]},
                      headers=t["headers"])
    assert resp.status_code == 200
    assert scores(resp.get_json()["assessment"]) == {s1: 45, s2: 50}

    resp = client.put(f"/assessments/{created['id']}/marks",
                      json={"marks": [{"studentId": s2, "score": 5}]}, headers=t["headers"])
    assert scores(resp.get_json()["assessment"]) == {s2: 5}


def test_set_marks_with_empty_list_clears_idempotently(app, api, client, setup):
    t = setup["teacher"]
    created = api.create_assessment(t, setup["course"]["id"],
                                    marks=[{"studentId": setup["s1"]["id"], "score": 10}]).get_json()
    url = f"/assessments/{created['id']}/marks"

    first = client.put(url, json={"marks": []}, headers=t["headers"])
    second = client.put(url, json={"marks": []}, headers=t["headers"])
    assert first.status_code == second.status_code == 200
    assert first.get_json()["assessment"]["marks"] == []
    assert second.get_json()["assessment"]["marks"] == []
    with app.app_context():
        assert Mark.query.filter_by(assessment_id=created["id"]).count() == 0


def test_set_marks_post_alias_and_validation(api, client, setup):
    t = setup["teacher"]
    created = api.create_assessment(t, setup["course"]["id"]).get_json()
    url = f"/assessments/{created['id']}/marks"

    assert client.post(url, json={"marks": [{"studentId": setup["s1"]["id"], "score": 3}]},
                       headers=t["headers"]).status_code == 200
    assert client.put(url, json={}, headers=t["headers"]).status_code == 400
    assert client.put(url, json={"marks": "nope"}, headers=t["headers"]).status_code == 400


def test_get_marks(api, client, setup):
    t = setup["teacher"]
    created = api.create_assessment(t, setup["course"]["id"],
                                    marks=[{"studentId": setup["s2"]["id"], "score": 12}]).get_json()
    resp = client.get(f"/assessments/{created['id']}/marks", headers=t["headers"])
    assert resp.status_code == 200
    marks = resp.get_json()["marks"]
    assert marks[0]["student"]["id"] == setup["s2"]["id"]
    assert marks[0]["score"] == 12


def test_update_single_mark(api, client, setup):
    t = setup["teacher"]
    s1 = setup["s1"]["id"]
    created = api.create_assessment(t, setup["course"]["id"], max_marks=30,
                                    marks=[{"studentId": s1, "score": 10}]).get_json()
    url = f"/assessments/{created['id']}/marks/{s1}"

    resp = client.put(url, json={"score": 25, "comment": "Better"}, headers=t["headers"])
    assert resp.status_code == 200
    assert resp.get_json()["mark"]["score"] == 25
    assert resp.get_json()["mark"]["comment"] == "Better"

    resp = client.put(url, json={"score": 99}, headers=t["headers"])
    assert resp.get_json()["mark"]["score"] == 30
    assert resp.get_json()["mark"]["comment"] == ""

    resp = client.put(url, json={"score": -2}, headers=t["headers"])
    assert resp.status_code == 400
    assert "score" in resp.get_json()["errors"]


def test_update_mark_for_unmarked_student_is_404(api, client, setup):
    t = setup["teacher"]
    created = api.create_assessment(t, setup["course"]["id"]).get_json()
    resp = client.put(f"/assessments/{created['id']}/marks/{setup['s2']['id']}",
                      json={"score": 4}, headers=t["headers"])
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Mark not found for this student"


def test_delete_assessment_unlinks_from_course(app, api, client, setup):
    t, cid = setup["teacher"], setup["course"]["id"]
    doomed = api.create_assessment(t, cid, marks=[{"studentId": setup["s1"]["id"], "score": 1}]).get_json()
    kept = api.create_assessment(t, cid, name="Kept").get_json()

    resp = client.delete(f"/assessments/{doomed['id']}", headers=t["headers"])
    assert resp.status_code == 200

    listed = client.get(f"/assessments/course/{cid}", headers=t["headers"]).get_json()
    assert [a["id"] for a in listed] == [kept["id"]]
    with app.app_context():
        assert Mark.query.filter_by(assessment_id=doomed["id"]).count() == 0

    assert client.delete(f"/assessments/{doomed['id']}", headers=t["headers"]).status_code == 404
    assert client.get(f"/assessments/{doomed['id']}/marks", headers=t["headers"]).status_code == 404


@pytest.mark.parametrize("max_marks", ["nan", "inf", "-inf", "1e400"])
def test_create_assessment_rejects_non_finite_max_marks(app, api, setup, max_marks):
    resp = api.create_assessment(setup["teacher"], setup["course"]["id"], max_marks=max_marks,
                                 marks=[{"studentId": setup["s1"]["id"], "score": 5}])
    assert resp.status_code == 400
    assert resp.get_json()["errors"]["maxMarks"] == ["Max marks must be a positive number"]
    with app.app_context():
        assert Assessment.query.count() == 0


@pytest.mark.parametrize("payload,field", [
    ({"name": "X", "type": "Formative", "courseId": None, "maxMarks": 10}, "courseId"),
    ({"name": "X", "type": "Formative", "courseId": {"id": 1}, "maxMarks": 10}, "courseId"),
    ({"name": None, "type": "Formative", "maxMarks": None}, "maxMarks"),
])
def test_create_assessment_null_and_object_fields_are_400(client, setup, payload, field):
    resp = client.post("/assessments", json=payload, headers=setup["teacher"]["headers"])
    assert resp.status_code == 400
    assert field in resp.get_json()["errors"]


def test_mark_entries_with_null_fields_are_400(api, setup):
    resp = api.create_assessment(setup["teacher"], setup["course"]["id"], marks=[
        {"studentId": None, "score": 5},
        {"studentId": setup["s1"]["id"], "score": None},
    ])
    assert resp.status_code == 400
    errors = resp.get_json()["errors"]
    assert "marks[0].studentId" in errors
    assert errors["marks[1].score"] == ["Score must be a non-negative number"]


@pytest.mark.parametrize("score", [None, "nan", {"value": 3}])
def test_update_single_mark_rejects_null_and_malformed_scores(api, client, setup, score):
    t = setup["teacher"]
    s1 = setup["s1"]["id"]
    created = api.create_assessment(t, setup["course"]["id"],
                                    marks=[{"studentId": s1, "score": 10}]).get_json()
    resp = client.put(f"/assessments/{created['id']}/marks/{s1}", json={"score": score},
                      headers=t["headers"])
    assert resp.status_code == 400
    assert "score" in resp.get_json()["errors"]
