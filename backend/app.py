import os
import traceback

import click
from flask import Flask, jsonify, request, send_from_directory
from flask_login import LoginManager, current_user, login_required
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

import services
from auth import admin_required, bearer_token, ensure_self_or_admin, issue_token, read_token
from errors import BadRequestError, ForbiddenError, StudyMateError
from models import db, User
from schemas import (
    AttachmentUpdatePayload,
    LoginPayload,
    RegisterPayload,
    SessionCreatePayload,
    SessionUpdatePayload,
    SubjectCreatePayload,
    SubjectUpdatePayload,
    TaskCreatePayload,
    TaskUpdatePayload,
    UserCreatePayload,
    UserUpdatePayload,
)
from seed import seed_demo_data

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

app = Flask(__name__)

app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key-please-change")
DB_USER = os.environ.get("DB_USER", "studyuser")
DB_PASS = os.environ.get("DB_PASS", "study_pass")
DB_HOST = os.environ.get("DB_HOST", "localhost")
DB_PORT = os.environ.get("DB_PORT", "3306")
DB_NAME = os.environ.get("DB_NAME", "studymate")

app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["TOKEN_MAX_AGE"] = int(os.environ.get("TOKEN_MAX_AGE", 24 * 60 * 60))
app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_CONTENT_LENGTH", 10 * 1024 * 1024))
app.config["ALERT_WINDOW_DAYS"] = int(os.environ.get("ALERT_WINDOW_DAYS", 3))

db.init_app(app)

login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


@login_manager.request_loader
def load_user_from_request(req):
    token = bearer_token()
    if not token:
        return None
    payload = read_token(token)
    if not payload:
        return None
    user = db.session.get(User, payload["sub"])
    if not user or not user.active:
        return None
    return user


with app.app_context():
    db.create_all()


def _payload(model):
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    return model.model_validate(body)


def _changes(model):
    return _payload(model).model_dump(exclude_unset=True)


@app.errorhandler(StudyMateError)
def handle_service_error(e):
    return jsonify({"error": e.message}), e.status_code


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    details = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors()
    ]
    return jsonify({"error": "Invalid request", "details": details}), 400


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"error": e.description}), e.code


@app.route("/")
def root():
    return jsonify({"status": "ok", "service": "studymate"})


# ---------------------------------------------------------------- auth

@app.route("/auth/register", methods=["POST"])
def register():
    body = _payload(RegisterPayload)
    user = services.register_user(body.name, body.email, body.password)
    return jsonify(user.to_dict()), 201


@app.route("/auth/login", methods=["POST"])
def login():
    body = _payload(LoginPayload)
    user = services.authenticate(body.email, body.password)
    app.logger.info("User %s logged in", user.id)
    return jsonify({
        "access_token": issue_token(user),
        "user": {"studentId": user.id, "name": user.name, "email": user.email},
    })


@app.route("/auth/profile")
@login_required
def profile():
    return jsonify(current_user.to_dict())


# ---------------------------------------------------------------- users

@app.route("/users", methods=["POST"])
@admin_required
def create_user():
    body = _payload(UserCreatePayload)
    user = services.register_user(body.name, body.email, body.password, role=body.role)
    return jsonify(user.to_dict()), 201


@app.route("/users", methods=["GET"])
@admin_required
def list_users():
    return jsonify([u.to_dict() for u in services.list_users()])


@app.route("/users/<user_id>", methods=["GET"])
@login_required
def get_user(user_id):
    ensure_self_or_admin(user_id)
    return jsonify(services.get_user(user_id).to_dict())


@app.route("/users/<user_id>", methods=["PATCH"])
@login_required
def update_user(user_id):
    ensure_self_or_admin(user_id)
    changes = _changes(UserUpdatePayload)
    if not current_user.is_admin and ("role" in changes or "active" in changes):
        raise ForbiddenError("Only admins can change role or active status")
    user = services.update_user(services.get_user(user_id), changes)
    return jsonify(user.to_dict())


@app.route("/users/<user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id):
    ensure_self_or_admin(user_id)
    services.delete_user(services.get_user(user_id))
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- subjects

@app.route("/subjects", methods=["POST"])
@login_required
def create_subject():
    body = _payload(SubjectCreatePayload)
    subject = services.create_subject(
        current_user,
        name=body.name,
        assigned_teacher=body.assigned_teacher,
        color=body.color,
        schedule=[slot.model_dump() for slot in body.schedule],
    )
    return jsonify(subject.to_dict()), 201


@app.route("/subjects", methods=["GET"])
@login_required
def list_subjects():
    return jsonify([s.to_dict() for s in services.list_subjects(current_user)])


@app.route("/subjects/<subject_id>", methods=["GET"])
@login_required
def get_subject(subject_id):
    return jsonify(services.get_subject(current_user, subject_id).to_dict())


@app.route("/subjects/<subject_id>", methods=["PATCH"])
@login_required
def update_subject(subject_id):
    subject = services.update_subject(current_user, subject_id, _changes(SubjectUpdatePayload))
    return jsonify(subject.to_dict())


@app.route("/subjects/<subject_id>", methods=["DELETE"])
@login_required
def delete_subject(subject_id):
    services.delete_subject(current_user, subject_id)
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- tasks

@app.route("/tasks", methods=["POST"])
@login_required
def create_task():
    task = services.create_task(current_user, _payload(TaskCreatePayload).model_dump())
    return jsonify(task.to_dict()), 201


@app.route("/tasks", methods=["GET"])
@login_required
def list_tasks():
    return jsonify([t.to_dict() for t in services.list_tasks(current_user)])


@app.route("/tasks/subject/<subject_id>", methods=["GET"])
@login_required
def list_subject_tasks(subject_id):
    return jsonify([t.to_dict() for t in services.list_tasks_for_subject(current_user, subject_id)])


@app.route("/tasks/<task_id>", methods=["GET"])
@login_required
def get_task(task_id):
    return jsonify(services.get_task(current_user, task_id).to_dict())


@app.route("/tasks/<task_id>", methods=["PATCH"])
@login_required
def update_task(task_id):
    task = services.update_task(current_user, task_id, _changes(TaskUpdatePayload))
    return jsonify(task.to_dict())


@app.route("/tasks/<task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    services.delete_task(current_user, task_id)
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- pomodoro

@app.route("/pomodoro", methods=["POST"])
@login_required
def create_session():
    session = services.create_session(current_user, _payload(SessionCreatePayload).model_dump())
    return jsonify(session.to_dict()), 201


@app.route("/pomodoro", methods=["GET"])
@login_required
def list_sessions():
    return jsonify([s.to_dict() for s in services.list_sessions(current_user)])


@app.route("/pomodoro/task/<task_id>", methods=["GET"])
@login_required
def list_task_sessions(task_id):
    return jsonify([s.to_dict() for s in services.list_sessions_for_task(current_user, task_id)])


@app.route("/pomodoro/stats/<task_id>", methods=["GET"])
@login_required
def task_stats(task_id):
    return jsonify(services.task_session_stats(current_user, task_id).to_dict())


@app.route("/pomodoro/<session_id>", methods=["GET"])
@login_required
def get_session(session_id):
    return jsonify(services.get_session(current_user, session_id).to_dict())


@app.route("/pomodoro/<session_id>", methods=["PATCH"])
@login_required
def update_session(session_id):
    session = services.update_session(current_user, session_id, _changes(SessionUpdatePayload))
    return jsonify(session.to_dict())


@app.route("/pomodoro/<session_id>", methods=["DELETE"])
@login_required
def delete_session(session_id):
    services.delete_session(current_user, session_id)
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- attachments

@app.route("/attachments", methods=["POST"])
@login_required
def upload_attachment():
    task_id = (request.form.get("taskId") or "").strip()
    if not task_id:
        raise BadRequestError("taskId is required")
    attachment = services.save_attachment(current_user, task_id, request.files.get("file"))
    return jsonify(attachment.to_dict()), 201


@app.route("/attachments", methods=["GET"])
@login_required
def list_attachments():
    return jsonify([a.to_dict() for a in services.list_attachments(current_user)])


@app.route("/attachments/task/<task_id>", methods=["GET"])
@login_required
def list_task_attachments(task_id):
    return jsonify([a.to_dict() for a in services.list_attachments_for_task(current_user, task_id)])


@app.route("/attachments/<attachment_id>", methods=["GET"])
@login_required
def get_attachment(attachment_id):
    return jsonify(services.get_attachment(current_user, attachment_id).to_dict())


@app.route("/attachments/<attachment_id>/file", methods=["GET"])
@login_required
def download_attachment(attachment_id):
    attachment = services.get_attachment(current_user, attachment_id)
    return send_from_directory(
        app.config["UPLOAD_FOLDER"],
        attachment.file_name,
        as_attachment=True,
        download_name=attachment.original_name,
        mimetype=attachment.mime_type,
    )


@app.route("/attachments/<attachment_id>", methods=["PATCH"])
@login_required
def rename_attachment(attachment_id):
    body = _payload(AttachmentUpdatePayload)
    attachment = services.rename_attachment(current_user, attachment_id, body.original_name)
    return jsonify(attachment.to_dict())


@app.route("/attachments/<attachment_id>", methods=["DELETE"])
@login_required
def delete_attachment(attachment_id):
    services.delete_attachment(current_user, attachment_id)
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- alerts

@app.route("/alerts", methods=["GET"])
@login_required
def list_alerts():
    return jsonify([a.to_dict() for a in services.list_alerts(current_user)])


@app.route("/alerts/<alert_id>", methods=["DELETE"])
@login_required
def delete_alert(alert_id):
    services.delete_alert(current_user, alert_id)
    return jsonify({"status": "ok"})


# ---------------------------------------------------------------- cli

@app.cli.command("generate-alerts")
@click.option("--date", "on_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to generate alerts for (YYYY-MM-DD).")
def generate_alerts_command(on_date):
    """Create deadline alerts for open tasks due soon."""
    today = on_date.date() if on_date else None
    try:
        created = services.generate_deadline_alerts(today=today)
    except Exception as e:
        app.logger.error("Deadline alerts failed: %s", e)
        app.logger.error(traceback.format_exc())
        raise
    click.echo(f"Created {created} deadline alert(s).")


@app.cli.command("seed")
def seed_command():
    """Insert the demo admin, student and subjects."""
    created = seed_demo_data()
    click.echo("Seed data inserted." if created else "Demo users already exist, skipping.")


if __name__ == "__main__":
    app.run(debug=True)
