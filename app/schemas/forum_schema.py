from app.extensions.extensions import ma


class PostSchema(ma.Schema):
    id = ma.Int()
    uid = ma.Str()
    author = ma.Str()
    title = ma.Str()
    content = ma.Str()
    media_url = ma.Str(allow_none=True)
    up_votes = ma.Int()
    down_votes = ma.Int()
    score = ma.Int()
    created_at = ma.DateTime()
    updated_at = ma.DateTime()


class CommentSchema(ma.Schema):
    id = ma.Int()
    post_id = ma.Int()
    uid = ma.Str()
    author = ma.Str()
    content = ma.Str()
    created_at = ma.DateTime()
    updated_at = ma.DateTime()


class NotificationSchema(ma.Schema):
    id = ma.Int()
    type = ma.Str()
    to_uid = ma.Str()
    from_uid = ma.Str()
    from_user_name = ma.Str(allow_none=True)
    post_id = ma.Int()
    post_title = ma.Str(allow_none=True)
    comment_preview = ma.Str(allow_none=True)
    read = ma.Bool()
    created_at = ma.DateTime()


class PostSummarySchema(ma.Schema):
    post_id = ma.Int()
    summary = ma.Str()
    created_at = ma.DateTime()
    updated_at = ma.DateTime()


class ThreadSummarySchema(PostSummarySchema):
    comment_count = ma.Int()


post_schema = PostSchema()
comment_schema = CommentSchema()
notification_schema = NotificationSchema()
post_summary_schema = PostSummarySchema()
thread_summary_schema = ThreadSummarySchema()
