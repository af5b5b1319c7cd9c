"""Per-client view of the forum.

A ``ForumAggregate`` keeps the live post list for one client plus, for
every post the client has open, its comment thread and both summaries.
It only holds the latest snapshots; every write goes through the
services, and the client learns about the result from the feeds.
"""

import logging
from threading import Lock

from app.models.comment_model import Comment
from app.models.summary_model import PostSummary, ThreadSummary
from app.models.vote_model import Vote
from app.repositories import comment_repository, notification_repository, post_repository
from app.repositories import summary_repository
from app.services import comment_service, notification_service, post_service
from app.services import summary_service, vote_service
from app.services.post_service import SORT_DATE, SORT_KEYS


logger = logging.getLogger(__name__)


class _OpenPost:
    def __init__(self, post_id):
        self.post_id = post_id
        self.comments = []
        self.post_summary = None
        self.thread_summary = None
        self.subscriptions = []
        self.ready = False


class ForumAggregate:
    def __init__(
        self,
        uid,
        author=None,
        on_posts=None,
        on_comments=None,
        on_summary=None,
        on_notifications=None,
    ):
        self.uid = uid
        self.author = author
        self._on_posts = on_posts
        self._on_comments = on_comments
        self._on_summary = on_summary
        self._on_notifications = on_notifications

        self._lock = Lock()
        self._posts = []
        self._search = ""
        self._sort_key = SORT_DATE
        self._open = {}
        self._subscriptions = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self):
        posts_feed = post_repository.posts_feed(
            watch=(Comment, Vote, PostSummary, ThreadSummary)
        )
        notifications_feed = notification_repository.notifications_feed(self.uid)

        self._subscriptions.append(posts_feed.subscribe(self._handle_posts))
        self._subscriptions.append(notifications_feed.subscribe(self._handle_notifications))
        return self

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscriptions = list(self._subscriptions)
            self._subscriptions = []
            open_posts = list(self._open.values())
            self._open = {}

        for open_post in open_posts:
            subscriptions.extend(open_post.subscriptions)
        for subscription in subscriptions:
            subscription.unsubscribe()

    # Post list

    def _handle_posts(self, posts):
        views = post_service.build_post_views(posts, self.uid)
        with self._lock:
            self._posts = views
        self._emit_posts()

    def _emit_posts(self):
        if self._on_posts is not None:
            self._on_posts(self.view())

    def view(self, search=None, sort_key=None) -> list[dict]:
        with self._lock:
            posts = list(self._posts)
            search = self._search if search is None else search
            sort_key = self._sort_key if sort_key is None else sort_key
        return post_service.filter_and_sort_posts(posts, search, sort_key)

    def set_view(self, search=None, sort_key=None):
        sort_key = sort_key or SORT_DATE
        if sort_key not in SORT_KEYS:
            raise ValueError("Invalid sort key")
        with self._lock:
            self._search = search or ""
            self._sort_key = sort_key
        self._emit_posts()

    # Open posts

    def open_post(self, post_id):
        if not post_repository.get_post(post_id, fresh=True):
            raise ValueError("Post not found")

        with self._lock:
            if self._closed or post_id in self._open:
                return
            open_post = _OpenPost(post_id)
            self._open[post_id] = open_post

        feeds = (
            (comment_repository.comments_feed(post_id), self._comments_handler(open_post)),
            (summary_repository.post_summary_feed(post_id), self._summary_handler(open_post, "post")),
            (summary_repository.thread_summary_feed(post_id), self._summary_handler(open_post, "thread")),
        )
        for feed, handler in feeds:
            open_post.subscriptions.append(feed.subscribe(handler))

        # close() may have run while the feeds were being opened.
        if self._closed:
            for subscription in open_post.subscriptions:
                subscription.unsubscribe()
            return

        open_post.ready = True
        self._emit_summary(open_post)

    def close_post(self, post_id):
        with self._lock:
            open_post = self._open.pop(post_id, None)
        if open_post is None:
            return
        for subscription in open_post.subscriptions:
            subscription.unsubscribe()

    def open_posts(self) -> list:
        with self._lock:
            return list(self._open)

    def comments(self, post_id) -> list[dict]:
        with self._lock:
            open_post = self._open.get(post_id)
            return list(open_post.comments) if open_post else []

    def _comments_handler(self, open_post):
        def handle(comments):
            open_post.comments = comments
            if self._on_comments is not None:
                self._on_comments(open_post.post_id, comments)

            if open_post.ready:
                self._emit_summary(open_post)
            summary_service.evaluate_after_write("thread", open_post.post_id, comments)

        return handle

    def _summary_handler(self, open_post, kind):
        def handle(snapshot):
            latest = snapshot[0] if snapshot else None
            if kind == "post":
                open_post.post_summary = latest
            else:
                open_post.thread_summary = latest
            if open_post.ready:
                self._emit_summary(open_post)

        return handle

    def summary(self, post_id) -> dict:
        with self._lock:
            open_post = self._open.get(post_id)
        if open_post is None:
            return summary_service.summary_state(post_id, evaluate=False)
        return self._summary_state(open_post)

    def _summary_state(self, open_post) -> dict:
        post_id = open_post.post_id
        return {
            "post_id": post_id,
            "post": summary_service.post_summaries.state(
                post_id, cached=open_post.post_summary
            ),
            "thread": summary_service.thread_summaries.state(
                post_id,
                comment_count=len(open_post.comments),
                cached=open_post.thread_summary,
            ),
        }

    def _emit_summary(self, open_post):
        if self._on_summary is not None:
            self._on_summary(open_post.post_id, self._summary_state(open_post))

    def _handle_notifications(self, notifications):
        if self._on_notifications is None:
            return
        unread = sum(1 for notification in notifications if not notification.get("read"))
        self._on_notifications(notifications, unread)

    # Commands

    def vote(self, post_id, value):
        return vote_service.cast_vote(post_id, self.uid, value, voter_name=self.author)

    def request_summary(self, post_id, kind):
        return summary_service.get_orchestrator(kind).request(post_id)

    def create_post(self, title, content, media=None):
        return post_service.create_post(self.uid, self.author, title, content, media)

    def edit_post(self, post_id, title, content):
        return post_service.edit_post(post_id, self.uid, title, content)

    def delete_post(self, post_id):
        post_service.delete_post(post_id, self.uid)
        self.close_post(post_id)

    def create_comment(self, post_id, content):
        return comment_service.create_comment(post_id, self.uid, self.author, content)

    def edit_comment(self, comment_id, content):
        return comment_service.edit_comment(comment_id, self.uid, content)

    def delete_comment(self, comment_id):
        return comment_service.delete_comment(comment_id, self.uid)

    def mark_notification_read(self, notification_id):
        return notification_service.mark_read(notification_id, self.uid)

    def mark_all_notifications_read(self):
        return notification_service.mark_all_read(self.uid)

    # Command name to the payload fields it takes, in call order.
    COMMANDS = {
        "vote": ("post_id", "value"),
        "request_summary": ("post_id", "kind"),
        "create_post": ("title", "content"),
        "edit_post": ("post_id", "title", "content"),
        "delete_post": ("post_id",),
        "create_comment": ("post_id", "content"),
        "edit_comment": ("comment_id", "content"),
        "delete_comment": ("comment_id",),
        "mark_notification_read": ("notification_id",),
        "mark_all_notifications_read": (),
    }

    def dispatch(self, command: str, payload=None):
        fields = self.COMMANDS.get(command)
        if fields is None:
            raise ValueError(f"Unknown command: {command}")
        payload = payload or {}
        logger.debug("Client %s runs %s", self.uid, command)
        return getattr(self, command)(*[payload.get(name) for name in fields])
