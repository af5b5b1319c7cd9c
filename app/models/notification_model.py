from app.db import db


NOTIFICATION_TYPES = ("upvote", "downvote", "new_comment")


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(20), nullable=False)

    to_uid = db.Column(db.String(36), nullable=False, index=True)
    from_uid = db.Column(db.String(36), nullable=False)
    from_user_name = db.Column(db.String(80), nullable=True)

    post_id = db.Column(db.Integer, nullable=False)
    post_title = db.Column(db.String(200), nullable=True)
    comment_preview = db.Column(db.String(120), nullable=True)

    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
