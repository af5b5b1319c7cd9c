import logging
import uuid

from app.extensions import blob_store
from app.extensions.blob_store import MediaStorageError
from app.repositories import comment_repository, document_store, post_repository
from app.repositories import summary_repository, vote_repository
from app.schemas.forum_schema import post_schema
from app.services import summary_service


logger = logging.getLogger(__name__)

ALLOWED_IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
}

SORT_DATE = "date"
SORT_POPULARITY = "popularity"
SORT_KEYS = (SORT_DATE, SORT_POPULARITY)


class ForumPermissionError(Exception):
    pass


def _clean(value):
    return value.strip() if isinstance(value, str) else ""


def _require_title_and_content(title, content):
    title = _clean(title)
    content = _clean(content)
    if not title or not content:
        raise ValueError("Title and content are required")
    return title, content


def _extension_for_mimetype(mimetype: str) -> str:
    mapping = {
        "image/jpeg": "jpeg",
        "image/png": "png",
        "image/webp": "webp",
    }
    return mapping.get(mimetype, mimetype.split("/")[-1])


def _validate_media(media):
    if media is None:
        return None
    if not getattr(media, "filename", ""):
        raise ValueError("Media file is required")

    mimetype = getattr(media, "mimetype", None) or ""
    if mimetype not in ALLOWED_IMAGE_MIME_TYPES:
        raise ValueError(f"Unsupported media type: {mimetype}")
    return mimetype


def _upload_media(uid, media, mimetype) -> str:
    path = f"forum_media/{uid}/{uuid.uuid4().hex}.{_extension_for_mimetype(mimetype)}"
    return blob_store.upload(path, media, mimetype)


def _get_owned_post(post_id, uid):
    post = post_repository.get_post(post_id, fresh=True)
    if not post:
        raise ValueError("Post not found")
    if post.uid != uid:
        raise ForumPermissionError("You can only modify your own posts")
    return post


def create_post(uid, author, title, content, media=None):
    title, content = _require_title_and_content(title, content)
    mimetype = _validate_media(media)

    media_url = _upload_media(uid, media, mimetype) if mimetype else None

    post = post_repository.create_post(
        uid=uid,
        author=author,
        title=title,
        content=content,
        media_url=media_url,
    )
    post_id = post.id
    document_store.commit()
    logger.info("Post %s created by %s", post_id, uid)

    summary_service.evaluate_after_write("post", post_id, content)
    return post_id


def edit_post(post_id, uid, title, content):
    title, content = _require_title_and_content(title, content)
    _get_owned_post(post_id, uid)

    post_repository.update_post(post_id, title, content)
    document_store.commit()

    summary_service.evaluate_after_write("post", post_id, content)
    return get_post_view(post_id, uid)


def delete_post(post_id, uid):
    _get_owned_post(post_id, uid)

    try:
        post_repository.delete_post(post_id)
        document_store.commit()
    except Exception:
        document_store.rollback()
        raise
    logger.info("Post %s deleted by %s", post_id, uid)


def build_post_views(posts, uid=None) -> list[dict]:
    """Decorate serialized posts with the viewer's vote, comment count and summary state."""
    post_ids = [post["id"] for post in posts]
    user_votes = vote_repository.get_user_votes(uid, post_ids)
    comment_counts = comment_repository.count_by_post_ids(post_ids)
    summaries = summary_repository.get_post_summaries(post_ids)

    views = []
    for post in posts:
        post_id = post["id"]
        summary = summaries.get(post_id)
        view = dict(post)
        view["score"] = (post.get("up_votes") or 0) - (post.get("down_votes") or 0)
        view["user_vote"] = user_votes.get(post_id)
        view["comment_count"] = comment_counts.get(post_id, 0)
        view["summary"] = summary["summary"] if summary else None
        view["summary_status"] = summary_service.post_summary_status(post_id, summary)
        views.append(view)
    return views


def filter_and_sort_posts(views, search=None, sort_key=SORT_DATE) -> list[dict]:
    """Apply the client's search text and sort order to post views.

    ``views`` must already be in feed order (newest first); both sorts are
    stable against it.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError("Invalid sort key")

    needle = _clean(search).lower()
    if needle:
        views = [
            view for view in views
            if needle in (view.get("title") or "").lower()
            or needle in (view.get("content") or "").lower()
        ]
    else:
        views = list(views)

    if sort_key == SORT_POPULARITY:
        views.sort(key=lambda view: view["score"], reverse=True)
    return views


def list_post_views(uid=None, search=None, sort_key=SORT_DATE) -> list[dict]:
    posts = post_schema.dump(
        post_repository.list_posts(),
        many=True,
    )
    return filter_and_sort_posts(build_post_views(posts, uid), search, sort_key)


def get_post_view(post_id, uid=None) -> dict:
    post = post_repository.get_post(post_id, fresh=True)
    if not post:
        raise ValueError("Post not found")
    return build_post_views([post_schema.dump(post)], uid)[0]
