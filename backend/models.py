# backend/models.py
from uuid import uuid4
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
from flask_login import UserMixin

db = SQLAlchemy()

ROLE_ADMIN = "Admin"
ROLE_STUDENT = "Student"

CLOSED_TASK_STATES = ("completed", "cancelled")


def _uuid():
    return str(uuid4())


def _iso(value):
    return value.isoformat() if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_STUDENT)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    subjects = db.relationship("Subject", backref="student", lazy=True, cascade="all, delete-orphan")

    def get_id(self):
        return str(self.id)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def to_dict(self):
        return {
            "studentId": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "active": self.active,
            "created_at": _iso(self.created_at),
        }


class Subject(db.Model):
    __tablename__ = "subjects"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    assigned_teacher = db.Column(db.String(200), nullable=False)
    color = db.Column(db.String(20), nullable=False)
    # list of {"day": ..., "start": "HH:MM", "end": "HH:MM"}, replaced wholesale on update
    schedule = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tasks = db.relationship("Task", backref="subject", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "subjectId": self.id,
            "name": self.name,
            "assignedTeacher": self.assigned_teacher,
            "color": self.color,
            "schedule": list(self.schedule or []),
            "studentId": self.user_id,
        }


class Task(db.Model):
    __tablename__ = "tasks"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    subject_id = db.Column(db.String(36), db.ForeignKey("subjects.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    delivery_date = db.Column(db.Date, nullable=False)
    priority = db.Column(db.String(20), nullable=False)
    state = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sessions = db.relationship("PomodoroSession", backref="task", lazy=True, cascade="all, delete-orphan")
    attachments = db.relationship("Attachment", backref="task", lazy=True, cascade="all, delete-orphan")
    alerts = db.relationship("Alert", backref="task", lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "task_id": self.id,
            "subjectId": self.subject_id,
            "title": self.title,
            "description": self.description,
            "notes": self.notes,
            "start_date": _iso(self.start_date),
            "delivery_date": _iso(self.delivery_date),
            "priority": self.priority,
            "state": self.state,
        }


class PomodoroSession(db.Model):
    """
    One timed study interval on a task. end_session stays empty until the
    session is finished.
    """
    __tablename__ = "pomodoro_sessions"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id"), nullable=False, index=True)
    duration_min = db.Column(db.Integer, nullable=False, default=25)
    break_time = db.Column(db.Integer, nullable=False, default=5)
    breaks_taken = db.Column(db.Integer, nullable=False, default=0)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    start_session = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    end_session = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "session_id": self.id,
            "duration_min": self.duration_min,
            "break_time": self.break_time,
            "breaks_taken": self.breaks_taken,
            "completed": self.completed,
            "start_session": _iso(self.start_session),
            "end_session": _iso(self.end_session),
            "task": {"task_id": self.task.id, "title": self.task.title},
        }


class Attachment(db.Model):
    __tablename__ = "attachments"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id"), nullable=False, index=True)
    file_name = db.Column(db.String(300), nullable=False)      # name on disk
    original_name = db.Column(db.String(300), nullable=False)  # name as uploaded
    file_url = db.Column(db.String(500), nullable=False)
    mime_type = db.Column(db.String(120), nullable=True)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    uploaded_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "attachmentId": self.id,
            "taskId": self.task_id,
            "fileName": self.file_name,
            "originalName": self.original_name,
            "fileUrl": self.file_url,
            "mimeType": self.mime_type,
            "fileSize": self.file_size,
            "uploadedAt": _iso(self.uploaded_at),
        }


class Alert(db.Model):
    __tablename__ = "alerts"
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id"), nullable=False, index=True)
    alert_date = db.Column(db.Date, nullable=False)
    message = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "alertId": self.id,
            "taskId": self.task_id,
            "alertDate": _iso(self.alert_date),
            "message": self.message,
            "created_at": _iso(self.created_at),
        }
