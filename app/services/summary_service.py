"""Cached post and thread summaries.

Each orchestrator owns one kind of summary and walks every post through
``absent -> generating -> present``. Automatic generation only fires when a
remote provider is configured, nothing is in flight for the post, no
valid summary is cached, no recent failure is recorded, and the content
crosses the kind's threshold. The in-flight claim lives in Redis so that
every worker of the app sees it.
"""

import logging
import re

from flask import current_app
from redis.exceptions import RedisError

from app.extensions.extensions import socketio
from app.repositories import comment_repository, document_store, post_repository, summary_repository
from app.repositories import summary_state_repository
from app.schemas.forum_schema import comment_schema
from app.services.summary_providers import (
    SUBJECT_POST,
    SUBJECT_THREAD,
    SummaryProviderError,
    SummaryUnavailableError,
    get_summary_provider,
)


logger = logging.getLogger(__name__)

STATUS_ABSENT = "absent"
STATUS_GENERATING = "generating"
STATUS_PRESENT = "present"

_UNSET = object()
_WHITESPACE = re.compile(r"\s+")


class SummaryOrchestrator:
    kind = None
    subject_type = None
    max_length_setting = None

    def load_subject(self, post_id):
        raise NotImplementedError

    def load_cached(self, post_id):
        raise NotImplementedError

    def has_content(self, subject) -> bool:
        raise NotImplementedError

    def is_valid(self, cached, subject) -> bool:
        raise NotImplementedError

    def should_trigger(self, subject) -> bool:
        raise NotImplementedError

    def build_content(self, subject) -> str:
        raise NotImplementedError

    def persist(self, post_id, subject, summary: str):
        raise NotImplementedError

    def max_length(self) -> int:
        return int(current_app.config[self.max_length_setting])

    def _generation_timeout(self) -> int:
        return int(current_app.config.get("SUMMARY_GENERATION_TIMEOUT_SECONDS", 120))

    def _error_ttl(self) -> int:
        return int(current_app.config.get("SUMMARY_ERROR_TTL_SECONDS", 300))

    def status(self, post_id, valid: bool) -> str:
        if summary_state_repository.is_generating(self.kind, post_id):
            return STATUS_GENERATING
        return STATUS_PRESENT if valid else STATUS_ABSENT

    def describe(self, post_id, cached, valid: bool) -> dict:
        return {
            "kind": self.kind,
            "status": self.status(post_id, valid),
            "summary": cached["summary"] if cached else None,
            "stale": bool(cached) and not valid,
            "error": summary_state_repository.get_error(self.kind, post_id),
            "updated_at": cached.get("updated_at") if cached else None,
        }

    def evaluate(self, post_id, subject=_UNSET, cached=_UNSET) -> bool:
        """Start generation for ``post_id`` if the auto-trigger policy holds.

        Returns True when a generation was dispatched by this call.
        """
        if not current_app.config.get("SUMMARY_AUTO_GENERATE", True):
            return False
        if not get_summary_provider().is_configured():
            return False
        if summary_state_repository.is_generating(self.kind, post_id):
            return False
        if summary_state_repository.get_error(self.kind, post_id):
            return False

        if subject is _UNSET:
            subject = self.load_subject(post_id)
        if cached is _UNSET:
            cached = self.load_cached(post_id)

        if self.is_valid(cached, subject) or not self.should_trigger(subject):
            return False

        if not summary_state_repository.try_mark_generating(
            self.kind, post_id, self._generation_timeout()
        ):
            return False

        logger.info("Auto-generating %s summary for post %s", self.kind, post_id)
        self._dispatch(post_id, subject)
        return True

    def request(self, post_id) -> dict:
        """Manual generation, allowed whatever the thresholds say."""
        subject = self.load_subject(post_id)
        if not self.has_content(subject):
            raise ValueError("Nothing to summarize yet")

        if summary_state_repository.try_mark_generating(
            self.kind, post_id, self._generation_timeout()
        ):
            self._generate(post_id, subject, allow_fallback=True)
        else:
            logger.info("%s summary for post %s already generating", self.kind, post_id)

        return self.subject_state(post_id, subject)

    def _dispatch(self, post_id, subject):
        app = current_app._get_current_object()
        if app.config.get("SUMMARY_BACKGROUND_GENERATION", True):
            socketio.start_background_task(self._generate_in_background, app, post_id, subject)
        else:
            self._generate_quietly(post_id, subject)

    def _generate_in_background(self, app, post_id, subject):
        with app.app_context():
            self._generate_quietly(post_id, subject)

    def _generate_quietly(self, post_id, subject):
        try:
            self._generate(post_id, subject, allow_fallback=False)
        except Exception:
            # Already recorded as the subject's error state.
            logger.exception("Automatic %s summary for post %s failed", self.kind, post_id)

    def _generate(self, post_id, subject, allow_fallback: bool):
        try:
            summary_state_repository.clear_error(self.kind, post_id)
            response = get_summary_provider().summarize(
                self.build_content(subject),
                self.subject_type,
                self.max_length(),
                allow_fallback=allow_fallback,
            )
            self.persist(post_id, subject, response.summary)
            # Subscribers notified by the commit must not see the claim.
            summary_state_repository.clear_generating(self.kind, post_id)
            document_store.commit()
            logger.info("Stored %s summary for post %s", self.kind, post_id)
            return response
        except (SummaryProviderError, SummaryUnavailableError) as e:
            summary_state_repository.set_error(self.kind, post_id, str(e), self._error_ttl())
            logger.warning("%s summary for post %s failed: %s", self.kind, post_id, e)
            raise
        except Exception:
            document_store.rollback()
            summary_state_repository.set_error(
                self.kind, post_id, "Failed to generate summary", self._error_ttl()
            )
            raise
        finally:
            summary_state_repository.clear_generating(self.kind, post_id)


class PostSummaryOrchestrator(SummaryOrchestrator):
    kind = "post"
    subject_type = SUBJECT_POST
    max_length_setting = "MAX_POST_SUMMARY_LENGTH"

    def load_subject(self, post_id):
        post = post_repository.get_post(post_id, fresh=True)
        if not post:
            raise ValueError("Post not found")
        return post.content

    def load_cached(self, post_id):
        return summary_repository.get_post_summary(post_id)

    def has_content(self, subject) -> bool:
        return bool(subject and subject.strip())

    def is_valid(self, cached, subject) -> bool:
        return cached is not None

    def should_trigger(self, subject) -> bool:
        threshold = int(current_app.config.get("POST_SUMMARY_THRESHOLD", 300))
        return len(subject or "") > threshold

    def build_content(self, subject) -> str:
        return subject

    def persist(self, post_id, subject, summary):
        if not post_repository.get_post(post_id, fresh=True):
            raise ValueError("Post not found")
        summary_repository.save_post_summary(post_id, summary)

    def subject_state(self, post_id, subject) -> dict:
        return self.state(post_id, subject)

    def state(self, post_id, subject=None, cached=_UNSET) -> dict:
        if cached is _UNSET:
            cached = self.load_cached(post_id)
        return self.describe(post_id, cached, self.is_valid(cached, subject))


class ThreadSummaryOrchestrator(SummaryOrchestrator):
    """Summaries of a post's comment thread.

    The subject is the ordered list of serialized comments. A cached
    summary is only valid for the comment count it was generated from.
    """

    kind = "thread"
    subject_type = SUBJECT_THREAD
    max_length_setting = "MAX_THREAD_SUMMARY_LENGTH"

    def load_subject(self, post_id):
        if not post_repository.get_post(post_id, fresh=True):
            raise ValueError("Post not found")
        return comment_schema.dump(comment_repository.get_comments_by_post(post_id), many=True)

    def load_cached(self, post_id):
        return summary_repository.get_thread_summary(post_id)

    def has_content(self, subject) -> bool:
        return bool(subject)

    @staticmethod
    def _is_fresh(cached, comment_count: int) -> bool:
        return cached is not None and cached.get("comment_count") == comment_count

    def is_valid(self, cached, subject) -> bool:
        return self._is_fresh(cached, len(subject))

    def should_trigger(self, subject) -> bool:
        threshold = int(current_app.config.get("THREAD_SUMMARY_THRESHOLD", 5))
        return len(subject) >= threshold

    def build_content(self, subject) -> str:
        # Blank lines separate comments, so they are collapsed inside each one.
        return "\n\n".join(
            "{}: {}".format(comment["author"], _WHITESPACE.sub(" ", comment["content"]).strip())
            for comment in subject
        )

    def persist(self, post_id, subject, summary):
        if not post_repository.get_post(post_id, fresh=True):
            raise ValueError("Post not found")
        summary_repository.save_thread_summary(post_id, summary, len(subject))

    def subject_state(self, post_id, subject) -> dict:
        return self.state(post_id, comment_count=len(subject))

    def state(self, post_id, comment_count=None, cached=_UNSET) -> dict:
        if cached is _UNSET:
            cached = self.load_cached(post_id)
        if comment_count is None:
            comment_count = comment_repository.count_by_post_ids([post_id]).get(post_id, 0)

        state = self.describe(post_id, cached, self._is_fresh(cached, comment_count))
        state["comment_count"] = cached.get("comment_count") if cached else None
        state["live_comment_count"] = comment_count
        return state


post_summaries = PostSummaryOrchestrator()
thread_summaries = ThreadSummaryOrchestrator()

ORCHESTRATORS = {
    post_summaries.kind: post_summaries,
    thread_summaries.kind: thread_summaries,
}


def get_orchestrator(kind: str) -> SummaryOrchestrator:
    orchestrator = ORCHESTRATORS.get(kind)
    if orchestrator is None:
        raise ValueError("Invalid summary kind")
    return orchestrator


def evaluate_after_write(kind: str, post_id, subject=_UNSET) -> bool:
    """Run the auto-trigger after a committed write without failing the write."""
    try:
        return get_orchestrator(kind).evaluate(post_id, subject)
    except RedisError as e:
        logger.warning("Could not evaluate %s summary for post %s: %s", kind, post_id, e)
        return False


def post_summary_status(post_id, cached) -> str:
    """Status of a post's own summary for list views."""
    try:
        return post_summaries.status(post_id, post_summaries.is_valid(cached, None))
    except RedisError as e:
        logger.warning("Could not read summary state for post %s: %s", post_id, e)
        return STATUS_PRESENT if cached else STATUS_ABSENT


def summary_state(post_id, evaluate: bool = True) -> dict:
    post_content = post_summaries.load_subject(post_id)
    comments = thread_summaries.load_subject(post_id)

    if evaluate:
        evaluate_after_write(post_summaries.kind, post_id, post_content)
        evaluate_after_write(thread_summaries.kind, post_id, comments)

    return {
        "post_id": post_id,
        "post": post_summaries.state(post_id, post_content),
        "thread": thread_summaries.state(post_id, comment_count=len(comments)),
    }
