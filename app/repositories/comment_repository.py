from sqlalchemy import func

from app.db import db
from app.models.comment_model import Comment
from app.repositories import document_store
from app.schemas.forum_schema import comment_schema


COMMENT_FEED_ORDER = (Comment.created_at.asc(), Comment.id.asc())


def create_comment(post_id, uid, author, content):
    return document_store.add(
        Comment,
        post_id=post_id,
        uid=uid,
        author=author,
        content=content,
    )


def get_comment(comment_id):
    return document_store.get(Comment, comment_id)


def update_comment(comment_id, content) -> bool:
    written = document_store.update(
        Comment,
        comment_id,
        {"content": content, "updated_at": document_store.server_timestamp()},
    )
    return written == 1


def delete_comment(comment_id) -> bool:
    return document_store.delete(Comment, comment_id) == 1


def get_comments_by_post(post_id):
    return document_store.find(
        Comment,
        {"post_id": post_id},
        order_by=COMMENT_FEED_ORDER,
    )


def count_by_post_ids(post_ids) -> dict:
    if not post_ids:
        return {}

    rows = (
        db.session.query(Comment.post_id, func.count(Comment.id))
        .filter(Comment.post_id.in_(post_ids))
        .group_by(Comment.post_id)
        .all()
    )
    return {post_id: count for post_id, count in rows}


def comments_feed(post_id):
    return document_store.query(
        Comment,
        {"post_id": post_id},
        order_by=COMMENT_FEED_ORDER,
        serializer=comment_schema,
    )
