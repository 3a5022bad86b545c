from flask import Blueprint, current_app, request, jsonify
from flask_login import LoginManager, UserMixin, current_user
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import generate_password_hash, check_password_hash
from functools import wraps
import logging

from geserver.api_responses import ErrorCode, error_response
from geserver.constants import KEY_ADMINS, KEY_USERS
from geserver.exceptions import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    ValidationException,
)
from geserver.utils import now_iso

# Retrieve main logger
logger = logging.getLogger("main")

SESSION_SALT = "geserver-session"
MIN_PASSWORD_LENGTH = 6


class AccountUser(UserMixin):
    """Identity resolved from the Authorization header"""

    def __init__(self, username, admin=False):
        self.id = username
        self.username = username
        self.admin = admin

    @property
    def is_admin(self):
        return self.admin


login_manager = LoginManager()
limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=SESSION_SALT)


def issue_session_token(username, admin=False):
    return _serializer().dumps({"username": username, "admin": bool(admin)})


def verify_session_token(token, max_age=None):
    """Return the token payload, or None when the signature is bad or expired."""
    if max_age is None:
        max_age = current_app.config["SESSION_MAX_AGE"]
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("Rejected expired session token")
        return None
    except BadSignature:
        return None
    if not isinstance(payload, dict) or "username" not in payload:
        return None
    return payload


def extract_token(req):
    auth_header = req.headers.get("Authorization")
    if not auth_header:
        return None
    auth_header = auth_header.strip()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return auth_header


def is_admin_token(store, token):
    return bool(token) and token in (store.get(KEY_ADMINS) or [])


@login_manager.request_loader
def load_user_from_request(req):
    token = extract_token(req)
    if not token:
        return None

    # 1. Static admin token allowlist
    if is_admin_token(current_app.store, token):
        return AccountUser("admin-token", admin=True)

    # 2. Signed session token issued by /users/login
    payload = verify_session_token(token)
    if payload:
        return AccountUser(payload["username"], admin=bool(payload.get("admin")))
    return None


@login_manager.unauthorized_handler
def unauthorized_json():
    if extract_token(request):
        return error_response(ErrorCode.UNAUTHORIZED, message="Invalid or expired token", status_code=401)
    return error_response(ErrorCode.UNAUTHORIZED, message="No authentication token provided", status_code=401)


def admin_required(f):
    """Accepts a static admin token or a session token carrying the admin flag"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if not current_user.is_admin:
            raise AuthorizationException("Not authorized")

        return f(*args, **kwargs)
    return decorated_function


def register_user(store, username, password):
    """
    Create an account. The very first account gets admin access.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationException("username and password must be strings")
    username = username.strip()
    if not username or not password:
        raise ValidationException("username and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationException(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    created = {}

    def _add(users):
        if username in users:
            raise ConflictException(f'User "{username}" already exists')
        created.update({
            "username": username,
            "passwordHash": generate_password_hash(password, method="pbkdf2:sha256"),
            "admin": len(users) == 0,
            "createdAt": now_iso(),
        })
        users[username] = dict(created)
        return users

    store.update(KEY_USERS, _add, default={})
    logger.info(f"Creating new user {username}")
    return {k: v for k, v in created.items() if k != "passwordHash"}


def authenticate(store, username, password):
    if not isinstance(username, str) or not isinstance(password, str):
        logger.warning("Rejected login with a non-string username or password")
        return None
    users = store.get(KEY_USERS) or {}
    user = users.get(username)
    if not user or not password or not check_password_hash(user.get("passwordHash", ""), password):
        logger.warning(f"Incorrect login for user {username}")
        return None
    logger.info(f"Sucessfull login for user {username}")
    return user


def login_rate_key():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    if username:
        return f"login:{username}"
    return get_remote_address()


def login_rate_limit():
    return current_app.config["LOGIN_RATE_LIMIT"]


auth_blueprint = Blueprint("auth", __name__)


@auth_blueprint.route("/users/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    user = register_user(current_app.store, data.get("username"), data.get("password"))
    return jsonify({"success": True, "user": user}), 201


@auth_blueprint.route("/users/login", methods=["POST"])
@limiter.limit(login_rate_limit, key_func=login_rate_key)
def login():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    user = authenticate(current_app.store, username, data.get("password"))
    if user is None:
        raise AuthenticationException("Invalid username or password")

    token = issue_session_token(user["username"], admin=user.get("admin", False))
    return jsonify({
        "success": True,
        "token": token,
        "username": user["username"],
        "admin": bool(user.get("admin")),
        "expiresIn": current_app.config["SESSION_MAX_AGE"],
    })


@auth_blueprint.route("/admin/login", methods=["POST"])
def admin_login():
    data = request.get_json(silent=True) or {}
    if is_admin_token(current_app.store, data.get("token")):
        return jsonify({"success": True})
    raise AuthenticationException("Invalid admin token")


@auth_blueprint.route("/admin/users", methods=["POST"])
@admin_required
def manage_admin_tokens():
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    token = data.get("token")
    if action not in ("add", "remove") or not token:
        raise ValidationException("action must be 'add' or 'remove' and token is required")

    def _apply(admins):
        if action == "add" and token not in admins:
            admins.append(token)
        elif action == "remove" and token in admins:
            admins.remove(token)
        return admins

    current_app.store.update(KEY_ADMINS, _apply, default=[])
    logger.info(f"Admin token {action} by {current_user.username}")
    return jsonify({"success": True})
