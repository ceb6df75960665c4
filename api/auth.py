from functools import wraps

from flask import current_app, jsonify, request


def require_admin(view):
    """Reject the request with 401 unless the admin session cookie is present."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        cookie_name = current_app.config["SETTINGS"].admin_cookie_name
        if not request.cookies.get(cookie_name):
            return jsonify(success=False, error="Unauthorized"), 401
        return view(*args, **kwargs)
    return wrapper
