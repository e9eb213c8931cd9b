# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

Login issues an opaque bearer token; every other API route expects it in
the Authorization header (see decorators.require_auth).
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "email": "user@example.com",
        "password": "..."
    }

    Returns:
        {user, token, session} on success, 401 on bad credentials
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login attempt for %s", email)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200
    except SQLAlchemyError:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    session_service.revoke_session(g.session_token, reason="User logout")
    return jsonify({"message": "Logged out successfully"})


@auth_bp.get("/me")
@require_auth
def me_route():
    """Return the authenticated user."""
    return jsonify({"user": g.current_user.to_dict()})
