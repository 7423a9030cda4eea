"""
Service layer between the Flask routes and the database.

Every lookup is scoped to the student who owns the record: another student's
subject, task, session, attachment or alert is reported as not found.
Services raise the errors from errors.py; app.py turns them into responses.
"""
import os
import traceback
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from flask import current_app, url_for
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash
from werkzeug.utils import secure_filename

from errors import (
    AlreadyExistsError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ScheduleConflictError,
    UnauthorizedError,
)
from models import (
    CLOSED_TASK_STATES,
    Alert,
    Attachment,
    PomodoroSession,
    Subject,
    Task,
    User,
    db,
)
from pomodoro import aggregate_sessions
from scheduling import check_schedule_conflicts


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.error("Failed to %s", action)
        current_app.logger.error(traceback.format_exc())
        raise


def _commit_user(action):
    try:
        _commit(action)
    except IntegrityError:
        raise AlreadyExistsError("Email already registered")


def _remove_files(paths):
    for path in paths:
        if os.path.exists(path):
            os.remove(path)
        else:
            current_app.logger.warning("Attachment file %s was already missing", path)


# ---------------------------------------------------------------- users

def register_user(name, email, password, role=None):
    if User.query.filter_by(email=email).first():
        raise AlreadyExistsError("Email already registered")
    user = User(name=name, email=email, password_hash=generate_password_hash(password))
    if role:
        user.role = role
    db.session.add(user)
    _commit_user("register user")
    current_app.logger.info("Registered user %s (%s)", user.id, user.role)
    return user


def authenticate(email, password):
    user = User.query.filter_by(email=email).first()
    if not user:
        raise UnauthorizedError("email is wrong")
    if not user.active:
        raise ForbiddenError("User account is inactive")
    if not check_password_hash(user.password_hash, password):
        raise UnauthorizedError("password is wrong")
    return user


def list_users():
    return User.query.order_by(User.created_at, User.id).all()


def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User with id {user_id} not found")
    return user


def update_user(user, changes):
    email = changes.get("email")
    if email and email != user.email and User.query.filter_by(email=email).first():
        raise AlreadyExistsError("Email already registered")
    for field in ("name", "email", "role", "active"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
    if changes.get("password"):
        user.password_hash = generate_password_hash(changes["password"])
    _commit_user("update user")
    return user


def delete_user(user):
    paths = [attachment_path(a) for a in _attachment_query(user)]
    db.session.delete(user)
    _commit("delete user")
    _remove_files(paths)


# ---------------------------------------------------------------- subjects

def validate_schedule(slots, student_id, exclude_subject_id=None):
    """
    Reject `slots` when any of them overlaps a slot of another subject of
    the same student. `exclude_subject_id` keeps an updated subject from
    being compared with its own previous schedule.
    """
    if not slots:
        return
    query = Subject.query.filter(Subject.user_id == student_id)
    if exclude_subject_id:
        query = query.filter(Subject.id != exclude_subject_id)
    existing = query.order_by(Subject.created_at, Subject.id).all()
    try:
        check_schedule_conflicts(slots, existing)
    except ScheduleConflictError as e:
        current_app.logger.info("Schedule conflict for student %s: %s", student_id, e.message)
        raise


def create_subject(student, name, assigned_teacher, color, schedule):
    slots = [dict(s) for s in (schedule or [])]
    validate_schedule(slots, student.id)
    subject = Subject(
        user_id=student.id,
        name=name,
        assigned_teacher=assigned_teacher,
        color=color,
        schedule=slots,
    )
    db.session.add(subject)
    _commit("create subject")
    return subject


def list_subjects(student):
    return Subject.query.filter_by(user_id=student.id).order_by(Subject.created_at, Subject.id).all()


def get_subject(student, subject_id):
    subject = Subject.query.filter_by(id=subject_id, user_id=student.id).first()
    if not subject:
        raise NotFoundError(f"Subject with id {subject_id} not found")
    return subject


def update_subject(student, subject_id, changes):
    subject = get_subject(student, subject_id)
    # only an explicit new schedule is revalidated
    if changes.get("schedule") is not None:
        slots = [dict(s) for s in changes["schedule"]]
        validate_schedule(slots, subject.user_id, exclude_subject_id=subject.id)
        subject.schedule = slots
    for field in ("name", "assigned_teacher", "color"):
        if changes.get(field) is not None:
            setattr(subject, field, changes[field])
    _commit("update subject")
    return subject


def delete_subject(student, subject_id):
    subject = get_subject(student, subject_id)
    paths = [attachment_path(a) for task in subject.tasks for a in task.attachments]
    db.session.delete(subject)
    _commit("delete subject")
    _remove_files(paths)


# ---------------------------------------------------------------- tasks

def _check_task_dates(start_date, delivery_date, today, check_start=True):
    if check_start and start_date < today:
        raise BadRequestError("start_date cannot be in the past")
    if delivery_date < start_date:
        raise BadRequestError("delivery_date cannot be before start_date")


def _task_query(student):
    return Task.query.join(Subject, Task.subject_id == Subject.id).filter(Subject.user_id == student.id)


def create_task(student, data, today=None):
    today = today or date.today()
    subject = get_subject(student, str(data["subject_id"]))
    _check_task_dates(data["start_date"], data["delivery_date"], today)
    task = Task(
        subject_id=subject.id,
        title=data["title"],
        description=data["description"],
        notes=data.get("notes"),
        start_date=data["start_date"],
        delivery_date=data["delivery_date"],
        priority=data["priority"],
        state=data["state"],
    )
    db.session.add(task)
    _commit("create task")
    return task


def list_tasks(student):
    return _task_query(student).order_by(Task.delivery_date, Task.created_at).all()


def list_tasks_for_subject(student, subject_id):
    subject = get_subject(student, subject_id)
    return Task.query.filter_by(subject_id=subject.id).order_by(Task.delivery_date, Task.created_at).all()


def get_task(student, task_id):
    task = _task_query(student).filter(Task.id == task_id).first()
    if not task:
        raise NotFoundError(f"Task with id {task_id} not found")
    return task


def update_task(student, task_id, changes, today=None):
    today = today or date.today()
    task = get_task(student, task_id)
    if changes.get("start_date") is not None or changes.get("delivery_date") is not None:
        _check_task_dates(
            changes.get("start_date") or task.start_date,
            changes.get("delivery_date") or task.delivery_date,
            today,
            check_start=changes.get("start_date") is not None,
        )
    for field in ("title", "description", "start_date", "delivery_date", "priority", "state"):
        if changes.get(field) is not None:
            setattr(task, field, changes[field])
    if "notes" in changes:
        task.notes = changes["notes"]
    _commit("update task")
    return task


def delete_task(student, task_id):
    task = get_task(student, task_id)
    paths = [attachment_path(a) for a in task.attachments]
    db.session.delete(task)
    _commit("delete task")
    _remove_files(paths)


# ---------------------------------------------------------------- pomodoro sessions

def _session_query(student):
    return (
        PomodoroSession.query
        .join(Task, PomodoroSession.task_id == Task.id)
        .join(Subject, Task.subject_id == Subject.id)
        .filter(Subject.user_id == student.id)
    )


def create_session(student, data):
    task = get_task(student, str(data["task_id"]))
    session = PomodoroSession(
        task_id=task.id,
        duration_min=data["duration_min"],
        break_time=data["break_time"],
        breaks_taken=data["breaks_taken"],
        completed=data["completed"],
    )
    db.session.add(session)
    _commit("create pomodoro session")
    return session


def list_sessions(student):
    return _session_query(student).order_by(PomodoroSession.start_session.desc()).all()


def list_sessions_for_task(student, task_id):
    task = get_task(student, task_id)
    return (
        PomodoroSession.query.filter_by(task_id=task.id)
        .order_by(PomodoroSession.start_session.desc())
        .all()
    )


def task_session_stats(student, task_id):
    return aggregate_sessions(list_sessions_for_task(student, task_id))


def get_session(student, session_id):
    session = _session_query(student).filter(PomodoroSession.id == session_id).first()
    if not session:
        raise NotFoundError(f"Pomodoro session with id {session_id} not found")
    return session


def update_session(student, session_id, changes, now=None):
    session = get_session(student, session_id)
    end = changes.get("end_session")
    if end is not None and end.tzinfo is not None:
        changes = dict(changes, end_session=end.astimezone(timezone.utc).replace(tzinfo=None))
    for field in ("duration_min", "breaks_taken", "completed", "end_session"):
        if changes.get(field) is not None:
            setattr(session, field, changes[field])
    if changes.get("completed") and session.end_session is None:
        session.end_session = now or datetime.utcnow()
    _commit("update pomodoro session")
    return session


def delete_session(student, session_id):
    session = get_session(student, session_id)
    db.session.delete(session)
    _commit("delete pomodoro session")


# ---------------------------------------------------------------- attachments

def _attachment_query(student):
    return (
        Attachment.query
        .join(Task, Attachment.task_id == Task.id)
        .join(Subject, Task.subject_id == Subject.id)
        .filter(Subject.user_id == student.id)
    )


def attachment_path(attachment):
    return os.path.join(current_app.config["UPLOAD_FOLDER"], attachment.file_name)


def save_attachment(student, task_id, upload):
    """Store an uploaded werkzeug FileStorage for a task and record it."""
    task = get_task(student, task_id)
    if upload is None or not upload.filename:
        raise BadRequestError("file is required")

    attachment_id = str(uuid4())
    safe_name = secure_filename(upload.filename) or "file"
    stored_name = f"{uuid4().hex}_{safe_name}"
    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, stored_name)
    upload.save(path)

    attachment = Attachment(
        id=attachment_id,
        task_id=task.id,
        file_name=stored_name,
        original_name=upload.filename,
        file_url=url_for("download_attachment", attachment_id=attachment_id),
        mime_type=upload.mimetype,
        file_size=os.path.getsize(path),
    )
    db.session.add(attachment)
    try:
        _commit("save attachment")
    except SQLAlchemyError:
        os.remove(path)
        raise
    current_app.logger.info("Stored attachment %s (%s bytes) for task %s", attachment.id, attachment.file_size, task.id)
    return attachment


def list_attachments(student):
    return _attachment_query(student).order_by(Attachment.uploaded_at.desc()).all()


def list_attachments_for_task(student, task_id):
    task = get_task(student, task_id)
    return Attachment.query.filter_by(task_id=task.id).order_by(Attachment.uploaded_at.desc()).all()


def get_attachment(student, attachment_id):
    attachment = _attachment_query(student).filter(Attachment.id == attachment_id).first()
    if not attachment:
        raise NotFoundError(f"Attachment with id {attachment_id} not found")
    return attachment


def rename_attachment(student, attachment_id, original_name):
    attachment = get_attachment(student, attachment_id)
    attachment.original_name = original_name
    _commit("rename attachment")
    return attachment


def delete_attachment(student, attachment_id):
    attachment = get_attachment(student, attachment_id)
    path = attachment_path(attachment)
    db.session.delete(attachment)
    _commit("delete attachment")
    _remove_files([path])


# ---------------------------------------------------------------- alerts

def deadline_message(title, days_left):
    if days_left <= 0:
        when = "today"
    elif days_left == 1:
        when = "tomorrow"
    else:
        when = f"in {days_left} days"
    return f'The task "{title}" is due {when}.'


def generate_deadline_alerts(today=None, window_days=None):
    """
    Create one alert per open task due within `window_days` of `today`.
    Tasks already alerted today are skipped. Returns the number created.
    """
    today = today or date.today()
    if window_days is None:
        window_days = current_app.config["ALERT_WINDOW_DAYS"]
    horizon = today + timedelta(days=window_days)

    due = (
        Task.query
        .filter(Task.state.notin_(CLOSED_TASK_STATES))
        .filter(Task.delivery_date >= today, Task.delivery_date <= horizon)
        .order_by(Task.delivery_date, Task.id)
        .all()
    )
    rows = []
    for task in due:
        if Alert.query.filter_by(task_id=task.id, alert_date=today).first():
            continue
        days_left = (task.delivery_date - today).days
        rows.append(Alert(task_id=task.id, alert_date=today, message=deadline_message(task.title, days_left)))

    if rows:
        db.session.add_all(rows)
        _commit("record deadline alerts")
    current_app.logger.info("Deadline alerts: %s created for %s", len(rows), today.isoformat())
    return len(rows)


def _alert_query(student):
    return (
        Alert.query
        .join(Task, Alert.task_id == Task.id)
        .join(Subject, Task.subject_id == Subject.id)
        .filter(Subject.user_id == student.id)
    )


def list_alerts(student):
    return (
        _alert_query(student)
        .order_by(Alert.alert_date.desc(), Alert.created_at.desc())
        .all()
    )


def delete_alert(student, alert_id):
    alert = _alert_query(student).filter(Alert.id == alert_id).first()
    if not alert:
        raise NotFoundError(f"Alert with id {alert_id} not found")
    db.session.delete(alert)
    _commit("delete alert")
