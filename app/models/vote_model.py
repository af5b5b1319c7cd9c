from app.db import db


class Vote(db.Model):
    __tablename__ = "post_votes"

    # One record per (post, voter); its existence is the source of truth
    # for the voter's current direction.
    post_id = db.Column(
        db.Integer,
        db.ForeignKey("forum_posts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    uid = db.Column(db.String(36), primary_key=True)

    value = db.Column(db.Integer, nullable=False)  # +1 | -1

    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    __table_args__ = (
        db.CheckConstraint("value IN (1, -1)", name="vote_value_sign"),
    )
