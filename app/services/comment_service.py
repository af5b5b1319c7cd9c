import logging

from app.repositories import comment_repository, document_store, notification_repository
from app.repositories import post_repository
from app.schemas.forum_schema import comment_schema
from app.services import summary_service
from app.services.post_service import ForumPermissionError


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def _require_content(content):
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Comment text is required")
    return content.strip()


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + "..."


def _get_post(post_id):
    post = post_repository.get_post(post_id, fresh=True)
    if not post:
        raise ValueError("Post not found")
    return post


def _get_comment(comment_id):
    comment = comment_repository.get_comment(comment_id)
    if not comment:
        raise ValueError("Comment not found")
    return comment


def create_comment(post_id, uid, author, content):
    content = _require_content(content)
    post = _get_post(post_id)

    comment = comment_repository.create_comment(post_id, uid, author, content)
    if post.uid != uid:
        notification_repository.create_notification(
            "new_comment",
            to_uid=post.uid,
            from_uid=uid,
            from_user_name=author,
            post_id=post_id,
            post_title=post.title,
            comment_preview=_preview(content),
        )
    payload = comment_schema.dump(comment)
    document_store.commit()

    summary_service.evaluate_after_write("thread", post_id)
    return payload


def edit_comment(comment_id, uid, content):
    content = _require_content(content)
    comment = _get_comment(comment_id)
    if comment.uid != uid:
        raise ForumPermissionError("You can only edit your own comments")

    post_id = comment.post_id
    comment_repository.update_comment(comment_id, content)
    document_store.commit()

    summary_service.evaluate_after_write("thread", post_id)
    return comment_schema.dump(_get_comment(comment_id))


def delete_comment(comment_id, uid):
    comment = _get_comment(comment_id)
    post_id = comment.post_id

    if comment.uid != uid:
        post = post_repository.get_post(post_id)
        if not post or post.uid != uid:
            raise ForumPermissionError("You can only delete your own comments")

    comment_repository.delete_comment(comment_id)
    document_store.commit()
    logger.info("Comment %s on post %s deleted by %s", comment_id, post_id, uid)

    summary_service.evaluate_after_write("thread", post_id)


def list_comments(post_id):
    _get_post(post_id)
    return comment_schema.dump(comment_repository.get_comments_by_post(post_id), many=True)
