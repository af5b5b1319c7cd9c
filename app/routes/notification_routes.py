from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.routes.responses import HANDLED_ERRORS, error_response
from app.services import notification_service

notification_bp = Blueprint("notifications", __name__)


@notification_bp.route("/notifications", methods=["GET"])
@jwt_required()
def list_notifications():
    return jsonify(notification_service.list_notifications(get_jwt_identity())), 200


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@jwt_required()
def mark_read(notification_id):
    try:
        notification_service.mark_read(notification_id, get_jwt_identity())
        return jsonify({"message": "Notification marked as read"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@notification_bp.route("/notifications/read-all", methods=["POST"])
@jwt_required()
def mark_all_read():
    updated = notification_service.mark_all_read(get_jwt_identity())
    return jsonify({"updated": updated}), 200
