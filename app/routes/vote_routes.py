from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.routes.responses import HANDLED_ERRORS, error_response
from app.services import auth_service, vote_service

vote_bp = Blueprint("votes", __name__)


@vote_bp.route("/posts/<int:post_id>/votes", methods=["POST"])
@jwt_required()
def vote_route(post_id):
    uid = get_jwt_identity()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    try:
        user = auth_service.get_current_user(uid)
        result = vote_service.cast_vote(
            post_id,
            uid,
            data.get("value"),
            voter_name=user.username,
        )
        return jsonify(result), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
