from app.models.comment_model import Comment
from app.models.post_model import Post
from app.models.summary_model import PostSummary, ThreadSummary
from app.models.vote_model import Vote
from app.repositories import document_store
from app.schemas.forum_schema import post_schema


POST_FEED_ORDER = (Post.created_at.desc(), Post.id.desc())


def create_post(uid, author, title, content, media_url=None):
    return document_store.add(
        Post,
        uid=uid,
        author=author,
        title=title,
        content=content,
        media_url=media_url,
        up_votes=0,
        down_votes=0,
    )


def get_post(post_id, fresh=False):
    return document_store.get(Post, post_id, fresh=fresh)


def update_post(post_id, title, content) -> bool:
    written = document_store.update(
        Post,
        post_id,
        {
            "title": title,
            "content": content,
            "updated_at": document_store.server_timestamp(),
        },
    )
    return written == 1


def delete_post(post_id) -> bool:
    document_store.delete_where(Comment, post_id=post_id)
    document_store.delete_where(Vote, post_id=post_id)
    document_store.delete_where(PostSummary, post_id=post_id)
    document_store.delete_where(ThreadSummary, post_id=post_id)
    return document_store.delete(Post, post_id) == 1


def set_vote_counters(post_id, up_votes: int, down_votes: int) -> bool:
    written = document_store.update(
        Post,
        post_id,
        {"up_votes": up_votes, "down_votes": down_votes},
    )
    return written == 1


def list_posts():
    return document_store.find(Post, order_by=POST_FEED_ORDER)


def list_post_ids():
    return [post.id for post in list_posts()]


def posts_feed(watch=()):
    return document_store.query(
        Post,
        order_by=POST_FEED_ORDER,
        serializer=post_schema,
        watch=watch,
    )
