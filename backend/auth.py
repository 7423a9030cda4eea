"""
Bearer tokens and role checks.

Tokens are itsdangerous-signed payloads {"sub", "email", "role"} with a
time limit (TOKEN_MAX_AGE seconds). app.py hands them to Flask-Login through
a request_loader, so routes keep using login_required / current_user.
"""
from functools import wraps
from typing import Optional

from flask import current_app, request
from flask_login import current_user, login_required
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from errors import ForbiddenError

TOKEN_SALT = "studymate-access-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user) -> str:
    return _serializer().dumps({"sub": user.id, "email": user.email, "role": user.role})


def read_token(token: str) -> Optional[dict]:
    """Return the token payload, or None when it is forged, expired or malformed."""
    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        current_app.logger.info("Rejected expired access token")
        return None
    except BadSignature:
        return None
    if not isinstance(payload, dict) or not payload.get("sub"):
        return None
    return payload


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def admin_required(view):
    @wraps(view)
    @login_required
    def wrapper(*args, **kwargs):
        if not current_user.is_admin:
            raise ForbiddenError("Admin role required")
        return view(*args, **kwargs)
    return wrapper


def ensure_self_or_admin(user_id: str) -> None:
    if current_user.is_admin or current_user.id == user_id:
        return
    raise ForbiddenError("You can only access your own account")
