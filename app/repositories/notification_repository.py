from app.models.notification_model import Notification
from app.repositories import document_store
from app.schemas.forum_schema import notification_schema


NOTIFICATION_FEED_ORDER = (Notification.created_at.desc(), Notification.id.desc())


def create_notification(
    notification_type,
    to_uid,
    from_uid,
    from_user_name,
    post_id,
    post_title=None,
    comment_preview=None,
):
    return document_store.add(
        Notification,
        type=notification_type,
        to_uid=to_uid,
        from_uid=from_uid,
        from_user_name=from_user_name,
        post_id=post_id,
        post_title=post_title,
        comment_preview=comment_preview,
        read=False,
    )


def get_notification(notification_id):
    return document_store.get(Notification, notification_id)


def get_notifications_for(uid):
    return document_store.find(
        Notification,
        {"to_uid": uid},
        order_by=NOTIFICATION_FEED_ORDER,
    )


def count_unread(uid) -> int:
    return Notification.query.filter_by(to_uid=uid, read=False).count()


def mark_read(notification_id) -> bool:
    return document_store.update(Notification, notification_id, {"read": True}) == 1


def mark_all_read(uid) -> int:
    unread = Notification.query.filter_by(to_uid=uid, read=False).all()
    for notification in unread:
        document_store.update(Notification, notification.id, {"read": True})
    return len(unread)


def notifications_feed(uid):
    return document_store.query(
        Notification,
        {"to_uid": uid},
        order_by=NOTIFICATION_FEED_ORDER,
        serializer=notification_schema,
    )
