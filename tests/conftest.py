import os
import tempfile
from datetime import date, timedelta

# app.py reads its configuration at import time
_TMP = tempfile.mkdtemp(prefix="studymate-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP, "test.db")
os.environ["UPLOAD_FOLDER"] = os.path.join(_TMP, "uploads")
os.environ["SECRET_KEY"] = "test-secret"

import pytest

from app import app as flask_app
from models import ROLE_ADMIN, db
import services


@pytest.fixture
def app(tmp_path):
    flask_app.config.update(TESTING=True, UPLOAD_FOLDER=str(tmp_path / "uploads"))
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def register_and_login(client, name="Student One", email="student1@example.com", password="password123"):
    res = client.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.get_json()
    user_id = res.get_json()["studentId"]
    res = client.post("/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return {"Authorization": "Bearer " + res.get_json()["access_token"]}, user_id


@pytest.fixture
def student(client):
    return register_and_login(client)


@pytest.fixture
def other_student(client):
    return register_and_login(client, name="Student Two", email="student2@example.com")


@pytest.fixture
def admin(app, client):
    with app.app_context():
        services.register_user("Admin", "admin@example.com", "password123", role=ROLE_ADMIN)
    res = client.post("/auth/login", json={"email": "admin@example.com", "password": "password123"})
    body = res.get_json()
    return {"Authorization": "Bearer " + body["access_token"]}, body["user"]["studentId"]


def make_subject(client, headers, name="Mathematics", schedule=None):
    payload = {"name": name, "assignedTeacher": "Prof. Garcia", "color": "#FF5733"}
    if schedule is not None:
        payload["schedule"] = schedule
    return client.post("/subjects", json=payload, headers=headers)


def make_task(client, headers, subject_id, title="Homework", days=1, **extra):
    today = date.today()
    payload = {
        "subjectId": subject_id,
        "title": title,
        "description": "Solve the exercises",
        "start_date": today.isoformat(),
        "delivery_date": (today + timedelta(days=days)).isoformat(),
        "priority": "high",
        "state": "pending",
    }
    payload.update(extra)
    return client.post("/tasks", json=payload, headers=headers)


@pytest.fixture
def task_id(client, student):
    headers, _ = student
    subject_id = make_subject(client, headers).get_json()["subjectId"]
    return make_task(client, headers, subject_id).get_json()["task_id"]
