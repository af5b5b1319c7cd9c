"""Document-style access to the forum tables.

Each model is one logical collection of flat documents keyed by its
primary key. Writes are staged on the current session; ``commit`` makes
them durable and then notifies the change feeds of every collection the
transaction touched.
"""

from sqlalchemy import delete as sql_delete
from sqlalchemy import inspect
from sqlalchemy import update as sql_update

from app.db import db
from app.extensions.change_feed import ChangeFeed, change_feeds


_TOUCHED_KEY = "touched_collections"


class Increment:
    def __init__(self, amount: int):
        self.amount = amount

    def __repr__(self):
        return f"Increment({self.amount})"


def increment(amount: int = 1) -> Increment:
    return Increment(amount)


def server_timestamp():
    return db.func.now()


def collection_name(model) -> str:
    return model.__tablename__


def _touch(model):
    db.session.info.setdefault(_TOUCHED_KEY, set()).add(collection_name(model))


def _primary_key_names(model) -> list[str]:
    return [column.key for column in inspect(model).primary_key]


def _key_values(model, key) -> dict:
    names = _primary_key_names(model)
    values = key if isinstance(key, tuple) else (key,)
    if len(values) != len(names):
        raise ValueError(f"Key {key!r} does not match {collection_name(model)} primary key")
    return dict(zip(names, values))


def _key_clause(model, key):
    return [getattr(model, name) == value for name, value in _key_values(model, key).items()]


def _resolve_fields(model, fields: dict) -> dict:
    values = {}
    for name, value in fields.items():
        if isinstance(value, Increment):
            values[name] = getattr(model, name) + value.amount
        else:
            values[name] = value
    return values


def get(model, key, fresh: bool = False):
    # Bulk updates skip session synchronization, so callers about to make a
    # conditional write ask for a fresh row.
    return db.session.get(model, key, populate_existing=fresh)


def add(model, **fields):
    document = model(**_resolve_fields(model, fields))
    db.session.add(document)
    db.session.flush()
    _touch(model)
    return document


def put(model, key, fields: dict):
    """Create the document at ``key`` or merge ``fields`` into it."""
    document = get(model, key)
    if document is None:
        return add(model, **_key_values(model, key), **fields)

    for name, value in _resolve_fields(model, fields).items():
        setattr(document, name, value)
    db.session.flush()
    _touch(model)
    return document


def update(model, key, fields: dict, expected: dict | None = None) -> int:
    """Atomically apply ``fields`` to one document.

    ``expected`` turns the write into a conditional one: it only applies
    while the stored document still holds those values. Returns the number
    of documents written (0 or 1).
    """
    conditions = _key_clause(model, key)
    for name, value in (expected or {}).items():
        conditions.append(getattr(model, name) == value)

    statement = (
        sql_update(model)
        .where(*conditions)
        .values(**_resolve_fields(model, fields))
        .execution_options(synchronize_session=False)
    )
    written = db.session.execute(statement).rowcount
    if written:
        _touch(model)
    return written


def delete(model, key, expected: dict | None = None) -> int:
    conditions = _key_clause(model, key)
    for name, value in (expected or {}).items():
        conditions.append(getattr(model, name) == value)

    statement = (
        sql_delete(model)
        .where(*conditions)
        .execution_options(synchronize_session=False)
    )
    removed = db.session.execute(statement).rowcount
    if removed:
        _touch(model)
    return removed


def delete_where(model, **filters) -> int:
    statement = (
        sql_delete(model)
        .filter_by(**filters)
        .execution_options(synchronize_session=False)
    )
    removed = db.session.execute(statement).rowcount
    if removed:
        _touch(model)
    return removed


def find(model, filters: dict | None = None, order_by=None, limit: int | None = None):
    query = model.query.filter_by(**(filters or {})).populate_existing()
    if order_by is not None:
        query = query.order_by(*order_by)
    if limit:
        query = query.limit(limit)
    return query.all()


def query(
    model,
    filters: dict | None = None,
    order_by=None,
    limit: int | None = None,
    serializer=None,
    watch=(),
) -> ChangeFeed:
    """Live version of ``find``.

    ``serializer`` is a marshmallow schema used to turn rows into plain
    dicts before delivery. ``watch`` lists extra models whose changes
    should also refresh the feed.
    """

    def load():
        rows = find(model, filters, order_by, limit)
        if serializer is None:
            return rows
        return serializer.dump(rows, many=True)

    return ChangeFeed(
        change_feeds,
        collection_name(model),
        load,
        watch=[collection_name(extra) for extra in watch],
    )


def commit():
    touched = db.session.info.pop(_TOUCHED_KEY, set())
    db.session.commit()
    if touched:
        change_feeds.publish(sorted(touched))


def rollback():
    db.session.info.pop(_TOUCHED_KEY, None)
    db.session.rollback()
