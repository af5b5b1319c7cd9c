from app.db import db
from app.models.user_model import User


def get_by_username(username: str):
    return User.query.filter_by(username=username).first()


def get_by_uid(uid: str):
    return User.query.filter_by(uid=uid).first()


def create_user(username, password_hash):
    user = User(
        username=username,
        password_hash=password_hash,
    )
    db.session.add(user)
    db.session.commit()
    return user
