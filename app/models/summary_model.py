from app.db import db


class PostSummary(db.Model):
    __tablename__ = "post_summaries"

    post_id = db.Column(
        db.Integer,
        db.ForeignKey("forum_posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    summary = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)


class ThreadSummary(db.Model):
    __tablename__ = "thread_summaries"

    post_id = db.Column(
        db.Integer,
        db.ForeignKey("forum_posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    summary = db.Column(db.Text, nullable=False)
    # Comment count the summary was generated from; a different live
    # count makes the summary stale.
    comment_count = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
