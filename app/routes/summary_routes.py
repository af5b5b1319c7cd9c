from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.routes.responses import HANDLED_ERRORS, error_response
from app.services import summary_service

summary_bp = Blueprint("summaries", __name__)


@summary_bp.route("/posts/<int:post_id>/summary", methods=["GET"])
@jwt_required()
def get_summary(post_id):
    try:
        return jsonify(summary_service.summary_state(post_id)), 200
    except HANDLED_ERRORS as e:
        return error_response(e)


@summary_bp.route("/posts/<int:post_id>/summary", methods=["POST"])
@jwt_required()
def request_summary(post_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON body"}), 400

    try:
        orchestrator = summary_service.get_orchestrator(data.get("kind"))
        return jsonify(orchestrator.request(post_id)), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
