"""
Authentication blueprint:
- POST /auth/signup
- POST /auth/signin
- POST /auth/refresh
- POST /auth/logout            (current session)
- POST /auth/logout-all        (every session)
- POST /auth/forgot-password
- POST /auth/reset-password
- POST /auth/verify-email
- POST /auth/resend-verification
- POST /auth/change-password
- GET  /auth/me
- GET  /auth/sessions

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs, separate secrets)
- Stores refresh-token digests in the DB so they can be rotated and revoked
- Every refresh failure returns the same 401; the reason is only logged
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort

from auth_core.errors import InvalidToken, TokenRevoked, UserNotFound
from models.schemas.user import (
    SignupSchema,
    SigninSchema,
    ForgotPasswordSchema,
    ResetPasswordSchema,
    ChangePasswordSchema,
    UserOutSchema,
    SessionOutSchema,
)
from models.schemas.token import RefreshSchema, LogoutSchema, TokenSchema
from utils.decorators import jwt_required, current_auth

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

signup_schema = SignupSchema()
signin_schema = SigninSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_schema = TokenSchema()
forgot_schema = ForgotPasswordSchema()
reset_schema = ResetPasswordSchema()
change_password_schema = ChangePasswordSchema()
user_out_schema = UserOutSchema()
sessions_out_schema = SessionOutSchema(many=True)


def _auth_payload(result):
    return {"user": user_out_schema.dump(result.user), "tokens": result.tokens.to_dict()}


@bp.post("/signup")
def signup():
    """
    Register a new user and open a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
    responses:
      201:
        description: Created (returns user and tokens)
      409:
        description: Email already registered
      422:
        description: Validation error or weak password
    """
    data = signup_schema.load(request.get_json(silent=True) or {})
    result = current_auth().service.signup(data["email"], data["password"], data.get("name"))
    return jsonify({"data": _auth_payload(result)}), 201


@bp.post("/signin")
def signin():
    """
    Signin: return the user with access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid email or password
    """
    data = signin_schema.load(request.get_json(silent=True) or {})
    result = current_auth().service.signin(data["email"], data["password"])
    return jsonify({"data": _auth_payload(result)}), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (new token pair; the presented token is consumed)
      401:
        description: Invalid, expired or already used refresh token
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    try:
        tokens = current_auth().service.refresh(data["refresh_token"])
    except InvalidToken as e:
        logger.info("Refresh rejected: %s", e.reason)
        abort(401, description="Invalid or expired refresh token")
    except (TokenRevoked, UserNotFound) as e:
        logger.info("Refresh rejected: %s", e.code)
        abort(401, description="Invalid or expired refresh token")
    return jsonify({"data": tokens.to_dict()}), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the refresh tokens of the current session
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      204:
        description: ""
      401:
        description: Unauthorized
    """
    payload = logout_schema.load(request.get_json(silent=True) or {})
    auth = current_auth()
    if payload.get("refresh_token"):
        auth.sessions.revoke(g.current_user_id, payload["refresh_token"])
    auth.service.logout(g.current_user_id, g.current_session_id)
    return ("", 204)


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Logout everywhere: revokes every refresh token of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      204:
        description: ""
    """
    current_auth().service.logout_all(g.current_user_id)
    return ("", 204)


@bp.post("/forgot-password")
def forgot_password():
    """
    Start a password reset. Always answers 202 so account existence is not revealed.
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      202:
        description: Accepted
    """
    data = forgot_schema.load(request.get_json(silent=True) or {})
    current_auth().service.forgot_password(data["email"])
    return jsonify({"message": "If the account exists, a reset link has been sent"}), 202


@bp.post("/reset-password")
def reset_password():
    """
    Complete a password reset; signs the user out everywhere
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             password: { type: string }
    responses:
      200:
        description: Password updated
      401:
        description: Invalid or expired reset token
    """
    data = reset_schema.load(request.get_json(silent=True) or {})
    current_auth().service.reset_password(data["token"], data["password"])
    return jsonify({"message": "Password has been reset"}), 200


@bp.post("/verify-email")
def verify_email():
    """
    Confirm an email address with the token from the verification email
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Email verified
      401:
        description: Invalid verification token
    """
    data = token_schema.load(request.get_json(silent=True) or {})
    user = current_auth().service.verify_email(data["token"])
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/resend-verification")
@jwt_required()
def resend_verification():
    """
    Send a new verification email to the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      202:
        description: Accepted
    """
    current_auth().service.request_verification(g.current_user_id)
    return jsonify({"message": "Verification email queued"}), 202


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change password; revokes every session and returns a fresh token pair
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: OK (new tokens)
      401:
        description: Current password is wrong
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    tokens = current_auth().service.change_password(
        g.current_user_id, data["current_password"], data["new_password"]
    )
    return jsonify({"data": tokens.to_dict()}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = current_auth().service.get_profile(g.current_user_id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.get("/sessions")
@jwt_required()
def sessions():
    """
    List the current user's live sessions
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    rows = current_auth().service.list_sessions(g.current_user_id)
    return jsonify(
        {
            "data": sessions_out_schema.dump(rows),
            "meta": {"current_session_id": g.current_session_id, "total": len(rows)},
        }
    ), 200
