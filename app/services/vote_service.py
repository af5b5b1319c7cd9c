import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.repositories import document_store, notification_repository, post_repository
from app.repositories import user_repository, vote_repository


logger = logging.getLogger(__name__)

VALID_VOTE_VALUES = (1, -1)
NOTIFICATION_BY_VALUE = {1: "upvote", -1: "downvote"}


class VoteConflictError(Exception):
    pass


class _StaleVote(Exception):
    """The vote record changed between the read and the conditional write."""


def _apply_vote(post_id, uid, value):
    """Stage one attempt at moving ``uid``'s vote on ``post_id`` toward ``value``.

    Returns the voter's resulting direction (``None`` when the vote was
    removed) and whether a notification is due.
    """
    existing = vote_repository.get_vote(post_id, uid)

    if existing is None:
        vote_repository.insert_vote(post_id, uid, value)
        deltas = {vote_repository.counter_field(value): 1}
        result, notify = value, True
    elif existing.value == value:
        if not vote_repository.delete_vote(post_id, uid, expected_value=value):
            raise _StaleVote()
        deltas = {vote_repository.counter_field(value): -1}
        result, notify = None, False
    else:
        previous = existing.value
        if not vote_repository.switch_vote(post_id, uid, expected_value=previous, value=value):
            raise _StaleVote()
        deltas = {
            vote_repository.counter_field(previous): -1,
            vote_repository.counter_field(value): 1,
        }
        result, notify = value, True

    if not vote_repository.adjust_counters(post_id, deltas):
        raise ValueError("Post not found")
    return result, notify


def _vote_payload(post_id, user_vote):
    post = post_repository.get_post(post_id, fresh=True)
    return {
        "post_id": post_id,
        "user_vote": user_vote,
        "up_votes": post.up_votes,
        "down_votes": post.down_votes,
        "score": post.score,
    }


def cast_vote(post_id, uid, value, voter_name=None):
    """Toggle ``uid``'s vote on a post.

    Voting in the current direction removes the vote, voting the other way
    switches it. The vote record and both counters change in one
    transaction, retried when a concurrent vote by the same user wins the
    race.
    """
    if isinstance(value, bool) or value not in VALID_VOTE_VALUES:
        raise ValueError("Invalid vote value")

    post = post_repository.get_post(post_id, fresh=True)
    if not post:
        raise ValueError("Post not found")
    owner_uid = post.uid
    post_title = post.title

    max_attempts = max(1, int(current_app.config.get("VOTE_MAX_ATTEMPTS", 3)))
    for attempt in range(1, max_attempts + 1):
        try:
            user_vote, notify = _apply_vote(post_id, uid, value)
            if notify and owner_uid != uid:
                notification_repository.create_notification(
                    NOTIFICATION_BY_VALUE[value],
                    to_uid=owner_uid,
                    from_uid=uid,
                    from_user_name=voter_name or _display_name(uid),
                    post_id=post_id,
                    post_title=post_title,
                )
            document_store.commit()
        except (_StaleVote, IntegrityError):
            document_store.rollback()
            logger.info(
                "Vote by %s on post %s conflicted (attempt %s/%s)",
                uid, post_id, attempt, max_attempts,
            )
            continue
        except ValueError:
            document_store.rollback()
            raise
        except SQLAlchemyError:
            document_store.rollback()
            logger.exception("Vote by %s on post %s failed", uid, post_id)
            raise

        return _vote_payload(post_id, user_vote)

    logger.warning("Giving up on vote by %s on post %s after %s attempts", uid, post_id, max_attempts)
    raise VoteConflictError("Vote could not be applied, please retry")


def get_user_vote(post_id, uid):
    vote = vote_repository.get_vote(post_id, uid)
    return vote.value if vote else None


def get_user_votes(uid, post_ids) -> dict:
    return vote_repository.get_user_votes(uid, list(post_ids))


def reconcile_vote_counters(post_id) -> bool:
    """Recompute a post's counters from its vote records.

    Returns True when the stored counters had drifted and were rewritten.
    """
    post = post_repository.get_post(post_id, fresh=True)
    if not post:
        raise ValueError("Post not found")

    up_votes, down_votes = vote_repository.count_votes(post_id)
    if (post.up_votes, post.down_votes) == (up_votes, down_votes):
        return False

    logger.warning(
        "Post %s counters drifted: stored %s/%s, recorded %s/%s",
        post_id, post.up_votes, post.down_votes, up_votes, down_votes,
    )
    post_repository.set_vote_counters(post_id, up_votes, down_votes)
    document_store.commit()
    return True


def reconcile_all_vote_counters() -> int:
    repaired = 0
    for post_id in post_repository.list_post_ids():
        if reconcile_vote_counters(post_id):
            repaired += 1
    return repaired


def _display_name(uid):
    user = user_repository.get_by_uid(uid)
    return user.username if user else None
