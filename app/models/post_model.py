from app.db import db


class Post(db.Model):
    __tablename__ = "forum_posts"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(36), nullable=False, index=True)
    author = db.Column(db.String(80), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    media_url = db.Column(db.String(512), nullable=True)

    # Denormalized from post_votes, maintained by the vote reconciler only.
    up_votes = db.Column(db.Integer, nullable=False, default=0)
    down_votes = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    @property
    def score(self) -> int:
        return (self.up_votes or 0) - (self.down_votes or 0)
