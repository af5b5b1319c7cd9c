import logging

from flask import request
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_socketio import emit
from jwt.exceptions import PyJWTError

from app.extensions.extensions import socketio
from app.repositories import user_repository
from app.routes.responses import HANDLED_ERRORS
from app.services.forum_service import ForumAggregate

logger = logging.getLogger(__name__)

_registered = False
_aggregates = {}

# Commands whose result goes out under its own event instead of command_result.
RESULT_EVENTS = {"vote": "vote_applied"}


def _extract_access_token(auth):
    if isinstance(auth, dict):
        token = auth.get("token") or auth.get("access_token")
        if token:
            return token

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip()

    return request.args.get("token")


def _emitter(event, sid):
    def send(payload):
        socketio.emit(event, payload, to=sid)
    return send


def _build_aggregate(sid, uid, username):
    send_posts = _emitter("forum_posts", sid)
    send_comments = _emitter("forum_comments", sid)
    send_summary = _emitter("forum_summary", sid)
    send_notifications = _emitter("notifications", sid)

    return ForumAggregate(
        uid,
        author=username,
        on_posts=lambda posts: send_posts({"posts": posts}),
        on_comments=lambda post_id, comments: send_comments(
            {"post_id": post_id, "comments": comments}
        ),
        on_summary=lambda post_id, state: send_summary(state),
        on_notifications=lambda notifications, unread: send_notifications(
            {"notifications": notifications, "unread_count": unread}
        ),
    )


def active_connections() -> int:
    return len(_aggregates)


def _current_aggregate():
    aggregate = _aggregates.get(request.sid)
    if aggregate is None:
        emit("forum_error", {"error": "Unauthorized"})
    return aggregate


def _payload(data):
    if not isinstance(data, dict):
        emit("forum_error", {"error": "Invalid payload"})
        return None
    return data


def _command_handler(command):
    result_event = RESULT_EVENTS.get(command, "command_result")

    def handle(data=None):
        aggregate = _current_aggregate()
        data = _payload({} if data is None else data)
        if aggregate is None or data is None:
            return
        try:
            result = aggregate.dispatch(command, data)
        except HANDLED_ERRORS as exc:
            emit("forum_error", {"command": command, "error": str(exc)})
            return
        if result_event == "command_result":
            result = {"command": command, "result": result}
        emit(result_event, result)

    return handle


def register_socket_events():
    global _registered
    if _registered:
        return

    @socketio.on("connect")
    def handle_connect(auth):
        token = _extract_access_token(auth)
        if not token:
            return False

        try:
            claims = decode_token(token)
        except (JWTExtendedException, PyJWTError):
            return False

        uid = claims.get("sub")
        user = user_repository.get_by_uid(uid) if uid else None
        if not user:
            return False

        sid = request.sid
        emit("connected", {"uid": user.uid, "username": user.username})

        aggregate = _build_aggregate(sid, user.uid, user.username)
        _aggregates[sid] = aggregate
        aggregate.start()
        logger.info("Forum client %s connected as %s", sid, user.uid)

    @socketio.on("disconnect")
    def handle_disconnect(*args):
        aggregate = _aggregates.pop(request.sid, None)
        if aggregate is not None:
            aggregate.close()
            logger.info("Forum client %s disconnected", request.sid)

    @socketio.on("open_post")
    def handle_open_post(data):
        aggregate = _current_aggregate()
        data = _payload(data)
        if aggregate is None or data is None:
            return
        try:
            aggregate.open_post(data.get("post_id"))
        except HANDLED_ERRORS as exc:
            emit("forum_error", {"error": str(exc)})

    @socketio.on("close_post")
    def handle_close_post(data):
        aggregate = _current_aggregate()
        data = _payload(data)
        if aggregate is None or data is None:
            return
        aggregate.close_post(data.get("post_id"))

    @socketio.on("set_view")
    def handle_set_view(data):
        aggregate = _current_aggregate()
        data = _payload(data)
        if aggregate is None or data is None:
            return
        try:
            aggregate.set_view(data.get("search"), data.get("sort"))
        except ValueError as exc:
            emit("forum_error", {"error": str(exc)})

    for command in ForumAggregate.COMMANDS:
        socketio.on(command)(_command_handler(command))

    _registered = True
