from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.routes.responses import HANDLED_ERRORS, error_response
from app.services import auth_service, comment_service


comment_bp = Blueprint("comments", __name__)


@comment_bp.route("/posts/<int:post_id>/comments", methods=["POST"])
@jwt_required()
def create_comment(post_id):
    uid = get_jwt_identity()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    try:
        user = auth_service.get_current_user(uid)
        comment = comment_service.create_comment(
            post_id,
            uid,
            user.username,
            data.get("content"),
        )
        return jsonify(comment), 201
    except HANDLED_ERRORS as e:
        return error_response(e)


@comment_bp.route("/posts/<int:post_id>/comments", methods=["GET"])
@jwt_required()
def list_comments(post_id):
    try:
        return jsonify({"comments": comment_service.list_comments(post_id)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@comment_bp.route("/comments/<int:comment_id>", methods=["PUT"])
@jwt_required()
def edit_comment(comment_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    try:
        comment = comment_service.edit_comment(
            comment_id,
            get_jwt_identity(),
            data.get("content"),
        )
        return jsonify(comment), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@comment_bp.route("/comments/<int:comment_id>", methods=["DELETE"])
@jwt_required()
def delete_comment(comment_id):
    try:
        comment_service.delete_comment(comment_id, get_jwt_identity())
        return jsonify({"message": "Comment deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
