from app.models.summary_model import PostSummary, ThreadSummary
from app.repositories import document_store
from app.schemas.forum_schema import post_summary_schema, thread_summary_schema


def get_post_summary(post_id):
    summary = document_store.get(PostSummary, post_id, fresh=True)
    return post_summary_schema.dump(summary) if summary else None


def get_thread_summary(post_id):
    summary = document_store.get(ThreadSummary, post_id, fresh=True)
    return thread_summary_schema.dump(summary) if summary else None


def get_post_summaries(post_ids) -> dict:
    if not post_ids:
        return {}
    rows = PostSummary.query.filter(PostSummary.post_id.in_(post_ids)).all()
    return {row.post_id: post_summary_schema.dump(row) for row in rows}


def get_thread_summaries(post_ids) -> dict:
    if not post_ids:
        return {}
    rows = ThreadSummary.query.filter(ThreadSummary.post_id.in_(post_ids)).all()
    return {row.post_id: thread_summary_schema.dump(row) for row in rows}


def save_post_summary(post_id, summary):
    document_store.put(
        PostSummary,
        post_id,
        {"summary": summary, "updated_at": document_store.server_timestamp()},
    )


def save_thread_summary(post_id, summary, comment_count):
    document_store.put(
        ThreadSummary,
        post_id,
        {
            "summary": summary,
            "comment_count": comment_count,
            "updated_at": document_store.server_timestamp(),
        },
    )


def post_summary_feed(post_id):
    return document_store.query(
        PostSummary,
        {"post_id": post_id},
        order_by=(PostSummary.updated_at.desc(),),
        limit=1,
        serializer=post_summary_schema,
    )


def thread_summary_feed(post_id):
    return document_store.query(
        ThreadSummary,
        {"post_id": post_id},
        order_by=(ThreadSummary.updated_at.desc(),),
        limit=1,
        serializer=thread_summary_schema,
    )
