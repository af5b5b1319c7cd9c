from app.repositories import document_store, notification_repository
from app.schemas.forum_schema import notification_schema
from app.services.post_service import ForumPermissionError


def list_notifications(uid):
    notifications = notification_repository.get_notifications_for(uid)
    return {
        "notifications": notification_schema.dump(notifications, many=True),
        "unread_count": sum(1 for notification in notifications if not notification.read),
    }


def unread_count(uid) -> int:
    return notification_repository.count_unread(uid)


def mark_read(notification_id, uid):
    notification = notification_repository.get_notification(notification_id)
    if not notification:
        raise ValueError("Notification not found")
    if notification.to_uid != uid:
        raise ForumPermissionError("You can only update your own notifications")

    if not notification.read:
        notification_repository.mark_read(notification_id)
        document_store.commit()


def mark_all_read(uid) -> int:
    updated = notification_repository.mark_all_read(uid)
    if updated:
        document_store.commit()
    return updated
