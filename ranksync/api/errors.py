"""JSON error handlers for the ingress API."""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from ranksync.core.relay.exceptions import DirectoryError, PayloadError

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(PayloadError)
    def invalid_payload(error):
        return jsonify({"error": "Bad Request", "message": str(error)}), 400

    @app.errorhandler(DirectoryError)
    def unknown_user(error):
        return jsonify({"error": "Not Found", "message": str(error)}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Render werkzeug HTTP errors (400, 401, 404, 405, ...) as JSON."""
        return jsonify({"error": error.name, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
