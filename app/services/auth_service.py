from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token, create_refresh_token

from app.repositories import user_repository


def _require_non_empty_string(value):
    return isinstance(value, str) and value.strip()


def register(username, password):
    if not _require_non_empty_string(username) or not _require_non_empty_string(password):
        raise ValueError("Missing fields")

    username = username.strip()
    if user_repository.get_by_username(username):
        raise ValueError("Username already exists")

    password_hash = generate_password_hash(password)
    user = user_repository.create_user(
        username=username,
        password_hash=password_hash,
    )
    return user.to_dict()


def login(username, password):
    if not _require_non_empty_string(username) or not _require_non_empty_string(password):
        raise ValueError("Invalid credentials")

    username = username.strip()

    user = user_repository.get_by_username(username)
    if not user or not check_password_hash(user.password_hash, password):
        raise ValueError("Invalid credentials")

    # Forum records are keyed by uid, so the token identity is the uid.
    return {
        "access_token": create_access_token(identity=user.uid),
        "refresh_token": create_refresh_token(identity=user.uid),
        "user": user.to_dict(),
    }


def refresh_access_token(uid):
    return {
        "access_token": create_access_token(identity=uid)
    }


def get_current_user(uid):
    user = user_repository.get_by_uid(uid)
    if not user:
        raise ValueError("User not found")
    return user
