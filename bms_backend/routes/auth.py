# bms_backend/routes/auth.py
import logging
from datetime import datetime

from flask import Blueprint, jsonify
from flask_jwt_extended import create_access_token

from ..extensions import db
from ..security import current_context, require_permission
from ..services.users import find_user_by_identifier
from ..utils.parsing import get_json

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 8


@bp.post("/auth/login")
def login():
    data = get_json()
    identifier = (data.get("identifier") or data.get("email") or data.get("phone") or "").strip()
    password = data.get("password") or ""
    if not identifier or not password:
        return jsonify({"error": "validation_error", "message": "identifier and password are required"}), 400

    user = find_user_by_identifier(identifier, data.get("organization_id"))
    if user is None or not user.check_password(password):
        logger.warning("Failed login for %s", identifier)
        return jsonify({"error": "invalid_credentials", "message": "Invalid credentials"}), 401
    if user.status != "active":
        return jsonify({
            "error": "account_disabled",
            "message": "Your account has been disabled. Please contact support.",
        }), 401

    user.last_login_at = datetime.utcnow()
    db.session.commit()

    claims = {
        "roles": list(user.roles or []),
        "organization_id": user.organization_id,
        "tenant_id": user.tenant_id,
    }
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    logger.info("User %s logged in", user.id)
    return jsonify({"access_token": token, "user": user.serialize()}), 200


@bp.get("/auth/me")
@require_permission()
def me():
    from ..models import User

    user = db.session.get(User, current_context().user_id)
    return jsonify({"user": user.serialize()}), 200


@bp.post("/auth/change-password")
@require_permission()
def change_password():
    from ..models import User

    data = get_json()
    current_password = data.get("current_password") or ""
    new_password = data.get("new_password") or ""
    if not current_password or not new_password:
        return jsonify({
            "error": "validation_error",
            "message": "current_password and new_password are required",
        }), 400
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            "error": "validation_error",
            "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        }), 400

    user = db.session.get(User, current_context().user_id)
    if not user.check_password(current_password):
        return jsonify({"error": "invalid_password", "message": "Current password is incorrect"}), 401

    user.set_password(new_password)
    db.session.commit()
    logger.info("User %s changed password", user.id)
    return jsonify({"message": "Password changed successfully"}), 200
