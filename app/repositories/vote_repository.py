from sqlalchemy import case, func

from app.db import db
from app.models.post_model import Post
from app.models.vote_model import Vote
from app.repositories import document_store


def counter_field(value: int) -> str:
    return "up_votes" if value == 1 else "down_votes"


def get_vote(post_id, uid):
    return document_store.get(Vote, (post_id, uid), fresh=True)


def insert_vote(post_id, uid, value):
    # The (post_id, uid) primary key rejects a concurrent duplicate insert.
    return document_store.add(Vote, post_id=post_id, uid=uid, value=value)


def delete_vote(post_id, uid, expected_value) -> bool:
    removed = document_store.delete(
        Vote,
        (post_id, uid),
        expected={"value": expected_value},
    )
    return removed == 1


def switch_vote(post_id, uid, expected_value, value) -> bool:
    written = document_store.update(
        Vote,
        (post_id, uid),
        {"value": value, "updated_at": document_store.server_timestamp()},
        expected={"value": expected_value},
    )
    return written == 1


def adjust_counters(post_id, deltas: dict) -> bool:
    fields = {
        field: document_store.increment(amount)
        for field, amount in deltas.items()
        if amount
    }
    if not fields:
        return True
    return document_store.update(Post, post_id, fields) == 1


def count_votes(post_id) -> tuple[int, int]:
    up_votes, down_votes = (
        db.session.query(
            func.coalesce(func.sum(case((Vote.value == 1, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Vote.value == -1, 1), else_=0)), 0),
        )
        .filter(Vote.post_id == post_id)
        .one()
    )
    return int(up_votes), int(down_votes)


def get_user_votes(uid, post_ids) -> dict:
    if not uid or not post_ids:
        return {}

    votes = Vote.query.filter(Vote.uid == uid, Vote.post_id.in_(post_ids)).all()
    return {vote.post_id: vote.value for vote in votes}
