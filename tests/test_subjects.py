import pytest
from sqlalchemy import event

import services
from conftest import make_subject
from errors import ScheduleConflictError
from models import Subject, db

FAKE_ID = "550e8400-e29b-41d4-a716-446655440000"

MONDAY_MORNING = [{"day": "Monday", "start": "08:00", "end": "10:00"}]


class TestCreateSubject:
    def test_create_with_schedule(self, client, student):
        headers, user_id = student
        schedule = [
            {"day": "Monday", "start": "08:00", "end": "10:00"},
            {"day": "Wednesday", "start": "08:00", "end": "10:00"},
        ]
        res = make_subject(client, headers, schedule=schedule)
        assert res.status_code == 201
        body = res.get_json()
        assert body["subjectId"]
        assert body["name"] == "Mathematics"
        assert body["assignedTeacher"] == "Prof. Garcia"
        assert body["color"] == "#FF5733"
        assert body["schedule"] == schedule
        assert body["studentId"] == user_id

    def test_schedule_is_optional(self, client, student):
        headers, _ = student
        res = make_subject(client, headers, name="Physics")
        assert res.status_code == 201
        assert res.get_json()["schedule"] == []

    def test_requires_auth(self, client):
        res = client.post("/subjects", json={"name": "X", "assignedTeacher": "Y", "color": "#000"})
        assert res.status_code == 401

    def test_invalid_payloads(self, client, student):
        headers, _ = student
        for payload in (
            {"name": "", "assignedTeacher": "", "color": ""},
            {"name": "History"},
            {"name": "A", "assignedTeacher": "B", "color": "#000",
             "schedule": [{"day": "Funday", "start": "08:00", "end": "09:00"}]},
            {"name": "A", "assignedTeacher": "B", "color": "#000",
             "schedule": [{"day": "Monday", "start": "8am", "end": "09:00"}]},
            {"name": "A", "assignedTeacher": "B", "color": "#000",
             "schedule": [{"day": "Monday", "start": "8:5", "end": "09:00"}]},
            {"name": "A", "assignedTeacher": "B", "color": "#000",
             "schedule": [{"day": "Monday", "start": "10:00", "end": "09:00"}]},
        ):
            assert client.post("/subjects", json=payload, headers=headers).status_code == 400


class TestScheduleConflicts:
    def test_overlapping_subject_is_rejected(self, client, student):
        headers, _ = student
        assert make_subject(client, headers, name="Subject A", schedule=MONDAY_MORNING).status_code == 201

        res = make_subject(client, headers, name="Subject B",
                           schedule=[{"day": "Monday", "start": "09:00", "end": "11:00"}])
        assert res.status_code == 400
        message = res.get_json()["error"]
        assert '"Subject A"' in message
        assert "Monday 09:00-11:00" in message
        assert "Monday 08:00-10:00" in message

        res = make_subject(client, headers, name="Subject B",
                           schedule=[{"day": "Tuesday", "start": "09:00", "end": "11:00"}])
        assert res.status_code == 201

    def test_adjacent_slots_are_allowed(self, client, student):
        headers, _ = student
        make_subject(client, headers, name="Subject A", schedule=MONDAY_MORNING)
        res = make_subject(client, headers, name="Subject B",
                           schedule=[{"day": "Monday", "start": "10:00", "end": "12:00"}])
        assert res.status_code == 201

    def test_other_students_schedules_do_not_conflict(self, client, student, other_student):
        headers, _ = student
        other_headers, _ = other_student
        make_subject(client, headers, schedule=MONDAY_MORNING)
        assert make_subject(client, other_headers, schedule=MONDAY_MORNING).status_code == 201

    def test_empty_schedule_never_conflicts(self, client, student):
        headers, _ = student
        make_subject(client, headers, schedule=MONDAY_MORNING)
        assert make_subject(client, headers, name="Physics", schedule=[]).status_code == 201

    def test_update_does_not_conflict_with_own_schedule(self, client, student):
        headers, _ = student
        subject_id = make_subject(client, headers, schedule=MONDAY_MORNING).get_json()["subjectId"]
        res = client.patch(f"/subjects/{subject_id}", json={"schedule": MONDAY_MORNING}, headers=headers)
        assert res.status_code == 200
        res = client.patch(f"/subjects/{subject_id}",
                           json={"schedule": [{"day": "Monday", "start": "09:00", "end": "10:30"}]},
                           headers=headers)
        assert res.status_code == 200

    def test_update_into_conflict_is_rejected_and_not_saved(self, client, student):
        headers, _ = student
        make_subject(client, headers, name="Subject A", schedule=MONDAY_MORNING)
        subject_id = make_subject(client, headers, name="Subject B").get_json()["subjectId"]

        res = client.patch(f"/subjects/{subject_id}",
                           json={"schedule": [{"day": "Monday", "start": "09:30", "end": "10:30"}]},
                           headers=headers)
        assert res.status_code == 400
        assert client.get(f"/subjects/{subject_id}", headers=headers).get_json()["schedule"] == []

    def test_partial_update_without_schedule_skips_validation(self, app, client, student):
        headers, user_id = student
        make_subject(client, headers, name="Subject A", schedule=MONDAY_MORNING)
        subject_id = make_subject(client, headers, name="Subject B").get_json()["subjectId"]

        # store an overlapping schedule behind the API's back
        with app.app_context():
            db.session.get(Subject, subject_id).schedule = [{"day": "Monday", "start": "09:00", "end": "11:00"}]
            db.session.commit()

        res = client.patch(f"/subjects/{subject_id}", json={"color": "#123456"}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["color"] == "#123456"


class TestReadUpdateDelete:
    def test_list_only_own_subjects(self, client, student, other_student):
        headers, _ = student
        other_headers, _ = other_student
        make_subject(client, headers, name="Mathematics")
        make_subject(client, headers, name="Physics")
        make_subject(client, other_headers, name="Chemistry")

        res = client.get("/subjects", headers=headers)
        assert res.status_code == 200
        assert sorted(s["name"] for s in res.get_json()) == ["Mathematics", "Physics"]

    def test_get_by_id_and_not_found(self, client, student, other_student):
        headers, _ = student
        other_headers, _ = other_student
        subject_id = make_subject(client, headers).get_json()["subjectId"]
        assert client.get(f"/subjects/{subject_id}", headers=headers).get_json()["name"] == "Mathematics"
        assert client.get(f"/subjects/{FAKE_ID}", headers=headers).status_code == 404
        assert client.get(f"/subjects/{subject_id}", headers=other_headers).status_code == 404

    def test_partial_update_keeps_other_fields(self, client, student):
        headers, _ = student
        subject_id = make_subject(client, headers).get_json()["subjectId"]
        res = client.patch(f"/subjects/{subject_id}",
                           json={"name": "Advanced Mathematics", "assignedTeacher": "Prof. Rodriguez"},
                           headers=headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["name"] == "Advanced Mathematics"
        assert body["assignedTeacher"] == "Prof. Rodriguez"
        assert body["color"] == "#FF5733"

    def test_update_missing_subject(self, client, student):
        headers, _ = student
        assert client.patch(f"/subjects/{FAKE_ID}", json={"name": "X"}, headers=headers).status_code == 404

    def test_delete(self, client, student):
        headers, _ = student
        subject_id = make_subject(client, headers).get_json()["subjectId"]
        assert client.delete(f"/subjects/{subject_id}", headers=headers).status_code == 200
        assert client.get(f"/subjects/{subject_id}", headers=headers).status_code == 404
        assert client.delete(f"/subjects/{subject_id}", headers=headers).status_code == 404


class TestValidateSchedule:
    @pytest.fixture
    def students(self, app):
        with app.app_context():
            first = services.register_user("First", "first@example.com", "password123")
            second = services.register_user("Second", "second@example.com", "password123")
            return first.id, second.id

    def test_empty_candidates_skip_the_database(self, app, students):
        first_id, _ = students
        statements = []

        def record(conn, cursor, statement, *args):
            statements.append(statement)

        with app.app_context():
            event.listen(db.engine, "before_cursor_execute", record)
            try:
                services.validate_schedule([], first_id)
                services.validate_schedule(None, first_id)
            finally:
                event.remove(db.engine, "before_cursor_execute", record)
        assert statements == []

    def test_only_the_students_own_subjects_are_compared(self, app, students):
        first_id, second_id = students
        with app.app_context():
            services.create_subject(services.get_user(second_id), "Chemistry", "Dr. Ruiz", "#111",
                                    MONDAY_MORNING)
            services.validate_schedule(MONDAY_MORNING, first_id)

            services.create_subject(services.get_user(first_id), "Biology", "Dr. Diaz", "#222",
                                    MONDAY_MORNING)
            with pytest.raises(ScheduleConflictError) as exc:
                services.validate_schedule(MONDAY_MORNING, first_id)
        assert exc.value.subject_name == "Biology"
