"""Safety Service HTTP handler.

Exposes the heuristic crisis classifier and the static helpline table
to other services and to clients that need to screen text (journals,
drafts) outside the chat flow.

No raw message text is logged; only fingerprints and lengths.
"""
import logging
import os

from flask import Flask, request, jsonify

from mindspace.shared.utils import hash_text_for_audit
from .classifier import CrisisClassifier
from .config import HELPLINES, SafetyConfig

logger = logging.getLogger(__name__)

MAX_CLASSIFY_LENGTH = 5000

app = Flask(__name__)

config = SafetyConfig.from_env()
classifier = CrisisClassifier(config=config)


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for ECS/ALB."""
    return jsonify({
        "status": "healthy",
        "service": "safety-service",
        "pattern_version": config.pattern_version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies classifier is initialized."""
    if classifier is None:
        return jsonify({"status": "not_ready", "reason": "classifier_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/classify", methods=["POST"])
def classify_message():
    """Classify a piece of text for crisis risk.

    Request Body:
        {"message": "text to screen"}

    Response:
        {
            "triggered": true | false,
            "score": 0.0-1.0,
            "reasons": [{"type": "...", "confidence": 0.9, "span": [3, 12]}],
            "pattern_version": "..."
        }

    Error Handling:
        On ANY internal error, returns a triggered classification.
        We never fail open - if classification breaks, assume risk.
    """
    data = request.get_json(silent=True)
    if not data:
        logger.warning("CLASSIFY_REQUEST_INVALID", extra={"reason": "empty_body"})
        return jsonify({"error": "Request body required"}), 400

    message = data.get("message")
    if not isinstance(message, str) or not message:
        logger.warning("CLASSIFY_REQUEST_INVALID", extra={"reason": "missing_message"})
        return jsonify({"error": "Missing required field: message"}), 400

    if len(message) > MAX_CLASSIFY_LENGTH:
        logger.warning(
            "CLASSIFY_REQUEST_INVALID",
            extra={"reason": "message_too_long", "message_length": len(message)}
        )
        return jsonify({"error": f"Message exceeds {MAX_CLASSIFY_LENGTH} characters"}), 400

    try:
        result = classifier.classify(message)
    except Exception as e:
        logger.error(
            "CLASSIFY_ERROR",
            extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "text_hash": hash_text_for_audit(message),
                "action": "DEFAULTING_TO_TRIGGERED",
            }
        )
        return jsonify({
            "triggered": True,
            "score": 1.0,
            "reasons": [],
            "error": "Classifier error - defaulting to triggered",
            "pattern_version": config.pattern_version,
        }), 200

    body = result.to_dict()
    body["pattern_version"] = config.pattern_version
    return jsonify(body), 200


@app.route("/crisis/helplines", methods=["GET"])
def helplines():
    """Static crisis helpline list. Never generated."""
    return jsonify({"helplines": [dict(h) for h in HELPLINES]}), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
