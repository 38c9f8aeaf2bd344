# auth.py
import logging
from functools import wraps

from flask import current_app
from flask_login import LoginManager, current_user
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from errors import Forbidden, Unauthenticated
from models import db, User

logger = logging.getLogger(__name__)

login_manager = LoginManager()

TOKEN_SALT = "auth-token"
RESET_SALT = "password-reset"


def _serializer(salt):
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=salt)


def issue_token(user) -> str:
    return _serializer(TOKEN_SALT).dumps({"uid": user.id})


def issue_reset_token(user) -> str:
    return _serializer(RESET_SALT).dumps({"uid": user.id, "email": user.email})


def load_reset_token(token):
    """Return the user a reset token was issued for, or None if it is invalid or expired."""
    try:
        data = _serializer(RESET_SALT).loads(
            token, max_age=current_app.config["PASSWORD_RESET_MAX_AGE"]
        )
    except (SignatureExpired, BadSignature):
        return None
    user = db.session.get(User, data.get("uid"))
    if user is None or user.email != data.get("email"):
        return None
    return user


def parse_bearer(header):
    if not header:
        return None
    parts = header.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


@login_manager.request_loader
def load_user_from_request(request):
    token = parse_bearer(request.headers.get("Authorization"))
    if not token:
        return None
    try:
        data = _serializer(TOKEN_SALT).loads(
            token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"]
        )
    except SignatureExpired:
        logger.warning("Rejected expired token")
        return None
    except BadSignature:
        logger.warning("Rejected token with bad signature")
        return None
    try:
        return db.session.get(User, int(data["uid"]))
    except (KeyError, TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthenticated("Authentication required")


def role_required(*roles):
    """Require an authenticated caller whose role is one of ``roles``."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                raise Unauthenticated("Authentication required")
            if current_user.role not in roles:
                raise Forbidden("Access denied for this role")
            return view(*args, **kwargs)
        return wrapped
    return decorator


def require_course_owner(course, action="modify"):
    if not course.is_owned_by(current_user):
        raise Forbidden(f"Not authorized to {action} this course")


def require_enrolled(course):
    if not course.has_student(current_user.id):
        raise Forbidden("Not enrolled in this course")
