"""Auth blueprint — /auth/*

Session login for the JSON API. Accepts a JSON body or a classic form
post, answers JSON either way. CSRF-exempt like the other API blueprints.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_user, logout_user

from leadbook.decorators import api_login_required
from leadbook.extensions import limiter
from leadbook.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

logger = logging.getLogger(__name__)


def _credentials():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    email = str(data.get("email") or "").lower().strip()
    password = str(data.get("password") or "")
    remember = bool(data.get("remember"))
    return email, password, remember


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute", methods=["POST"])
def login():
    """Email + password login. Sets the session cookie on success."""
    email, password, remember = _credentials()

    if not email or not password:
        return jsonify(
            success=False,
            error="validation_error",
            message="Email and password are required.",
        ), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not user.check_password(password):
        logger.info(f"Failed login for {email}")
        return jsonify(
            success=False,
            error="invalid_credentials",
            message="Invalid email or password.",
        ), 401

    if not user.is_active:
        return jsonify(
            success=False,
            error="forbidden",
            message="Your account has been deactivated.",
        ), 403

    login_user(user, remember=remember)
    logger.info(f"User {user.id} logged in")
    return jsonify(success=True, data=user.to_dict())


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify(success=True, message="Logged out.")


# ──────────────────────────────────────────────
# GET /auth/me
# ──────────────────────────────────────────────

@auth_bp.route("/me", methods=["GET"])
@api_login_required
def me():
    return jsonify(success=True, data=current_user.to_dict())
