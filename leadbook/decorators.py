"""
Custom route decorators for access control.

- api_login_required: ensures the caller has an active session and an
  active account. Unauthenticated callers get the login manager's JSON 401
  (no redirects, every route is an API route).
"""

from functools import wraps

from flask import jsonify
from flask_login import current_user

from leadbook.extensions import login_manager


def api_login_required(f):
    """Require an authenticated, active user."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.is_active:
            return jsonify(
                success=False,
                error="forbidden",
                message="Your account has been deactivated.",
            ), 403
        return f(*args, **kwargs)

    return decorated
