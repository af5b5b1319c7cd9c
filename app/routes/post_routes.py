from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.routes.responses import HANDLED_ERRORS, error_response
from app.services import auth_service, post_service

post_bp = Blueprint("posts", __name__)


@post_bp.route("/posts", methods=["POST"])
@jwt_required()
def create_post():
    uid = get_jwt_identity()

    content_type = (request.content_type or "").lower()
    media = None

    if "multipart/form-data" in content_type:
        title = request.form.get("title")
        content = request.form.get("content")
        media = request.files.get("media") or request.files.get("file")
    else:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON body"}), 400
        title = data.get("title")
        content = data.get("content")

    try:
        user = auth_service.get_current_user(uid)
        post_id = post_service.create_post(uid, user.username, title, content, media)
        return jsonify({
            "message": "Post created successfully",
            "post_id": post_id
        }), 201
    except HANDLED_ERRORS as e:
        return error_response(e)


@post_bp.route("/posts", methods=["GET"])
@jwt_required()
def list_posts():
    uid = get_jwt_identity()
    search = request.args.get("search", default="")
    sort_key = request.args.get("sort", default=post_service.SORT_DATE)

    try:
        posts = post_service.list_post_views(uid, search, sort_key)
        return jsonify({"posts": posts}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@post_bp.route("/posts/<int:post_id>", methods=["GET"])
@jwt_required()
def get_post(post_id):
    try:
        return jsonify(post_service.get_post_view(post_id, get_jwt_identity())), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@post_bp.route("/posts/<int:post_id>", methods=["PUT"])
@jwt_required()
def edit_post(post_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    try:
        post = post_service.edit_post(
            post_id,
            get_jwt_identity(),
            data.get("title"),
            data.get("content"),
        )
        return jsonify(post), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@post_bp.route("/posts/<int:post_id>", methods=["DELETE"])
@jwt_required()
def delete_post(post_id):
    try:
        post_service.delete_post(post_id, get_jwt_identity())
        return jsonify({"message": "Post deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
