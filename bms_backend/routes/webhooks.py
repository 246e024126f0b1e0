import logging

from flask import Blueprint, current_app, jsonify, request

from ..providers import get_payment_provider
from ..services.payment_intents import process_webhook

logger = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__)


@bp.post("/webhooks/payments/<provider>")
def payment_webhook(provider):
    """Provider callbacks; authenticated by signature, not by JWT."""
    gateway = get_payment_provider(provider)
    raw_body = request.get_data()

    if provider == "chapa":
        secret = current_app.config.get("CHAPA_WEBHOOK_SECRET") or current_app.config.get("CHAPA_SECRET_KEY")
        signature = request.headers.get("X-Chapa-Signature") or request.headers.get("Chapa-Signature")
        if not gateway.verify_webhook_signature(raw_body, signature, secret):
            logger.warning("Rejected chapa webhook with invalid signature")
            return jsonify({"error": "unauthorized", "message": "Invalid webhook signature"}), 401

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = request.form.to_dict() or {}
    return jsonify(process_webhook(provider, payload)), 200
