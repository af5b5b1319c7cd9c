import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.extensions.blob_store import MediaStorageError
from app.services.post_service import ForumPermissionError
from app.services.summary_providers import SummaryProviderError, SummaryUnavailableError
from app.services.vote_service import VoteConflictError


logger = logging.getLogger(__name__)

HANDLED_ERRORS = (
    ValueError,
    ForumPermissionError,
    VoteConflictError,
    MediaStorageError,
    SummaryProviderError,
    SummaryUnavailableError,
    SQLAlchemyError,
)


def error_status(error: Exception) -> int:
    if isinstance(error, ForumPermissionError):
        return 403
    if isinstance(error, VoteConflictError):
        return 409
    if isinstance(error, SummaryProviderError):
        return 502
    if isinstance(error, (MediaStorageError, SummaryUnavailableError)):
        return 503
    if isinstance(error, ValueError):
        return 404 if str(error).lower().endswith("not found") else 400
    return 500


def error_response(error: Exception):
    status = error_status(error)
    if status == 500:
        logger.exception("Unhandled store error")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"error": str(error)}), status
