"""
Token blueprint:
- POST /token/verify      is this access token valid right now?
- POST /token/decode      unverified claims, for inspection only
- POST /token/revoke-all  (bearer) revoke every refresh token of a user
- GET  /token/info        (bearer) describe the presented token
- POST /token/generate    (admin) sign an access token with custom claims
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort

from auth_core.errors import InvalidToken, UserNotFound
from models.schemas.token import TokenSchema, RevokeAllSchema, GenerateTokenSchema
from models.schemas.user import UserOutSchema
from utils.decorators import jwt_required, roles_required, current_auth

logger = logging.getLogger(__name__)

bp = Blueprint("tokens", __name__)

token_schema = TokenSchema()
revoke_all_schema = RevokeAllSchema()
generate_schema = GenerateTokenSchema()
user_out_schema = UserOutSchema()


@bp.post("/verify")
def verify():
    """
    Check an access token. Invalid tokens answer 200 with valid=false.
    ---
    tags:
      - Token
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Verification result
    """
    data = token_schema.load(request.get_json(silent=True) or {})
    try:
        claims, user = current_auth().service.check_access_token(data["token"])
    except InvalidToken as e:
        return jsonify({"data": {"valid": False, "reason": e.reason}}), 200
    except UserNotFound:
        return jsonify({"data": {"valid": False, "reason": "user_not_found"}}), 200

    return jsonify(
        {
            "data": {
                "valid": True,
                "user": user_out_schema.dump(user),
                "expires_at": claims.expires_at.isoformat(),
            }
        }
    ), 200


@bp.post("/decode")
def decode():
    """
    Decode a token WITHOUT verifying signature or expiry
    ---
    tags:
      - Token
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Decoded header and claims
      400:
        description: Invalid token format
    """
    data = token_schema.load(request.get_json(silent=True) or {})
    decoded = current_auth().engine.decode_token(data["token"])
    claims = decoded.claims
    return jsonify(
        {
            "data": {
                "header": decoded.header,
                "decoded": claims,
                "expires_at": claims.get("exp"),
                "issued_at": claims.get("iat"),
                "verified": False,
            }
        }
    ), 200


@bp.post("/revoke-all")
@jwt_required()
def revoke_all():
    """
    Revoke every refresh token of a user (own account, or any account for admins)
    ---
    tags:
      - Token
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             user_id: { type: string }
    responses:
      200:
        description: Tokens revoked
      403:
        description: Not allowed to revoke another user's tokens
    """
    data = revoke_all_schema.load(request.get_json(silent=True) or {})
    target = data.get("user_id") or g.current_user_id
    if target != g.current_user_id and "admin" not in (g.current_user_roles or []):
        abort(403, description="Insufficient role")

    removed = current_auth().sessions.revoke_all(target)
    logger.info("User %s revoked all tokens of user %s", g.current_user_id, target)
    return jsonify({"message": "All tokens revoked successfully", "data": {"revoked": removed}}), 200


@bp.get("/info")
@jwt_required()
def info():
    """
    Describe the bearer token (algorithm, timestamps, remaining validity)
    ---
    tags:
      - Token
    security:
      - Bearer: []
    responses:
      200:
        description: Token information
    """
    engine = current_auth().engine
    decoded = engine.decode_token(g.current_token)
    return jsonify({"data": engine.describe(decoded)}), 200


@bp.post("/generate")
@roles_required(["admin"])
def generate():
    """
    Admin-only: sign an access token with custom claims
    ---
    tags:
      - Token
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             payload: { type: object }
             expires_in: { type: string, example: 1h }
    responses:
      200:
        description: Signed token
      403:
        description: Insufficient role
    """
    data = generate_schema.load(request.get_json(silent=True) or {})
    claims = dict(data["payload"])
    # tokens without a subject are attributed to the issuing admin
    claims.setdefault("sub", g.current_user_id)
    expires_in = data.get("expires_in")
    token = current_auth().service.issue_custom_token(claims, expires_in)
    logger.info("Admin %s issued a custom token for subject %s", g.current_user_id, claims["sub"])
    ttl = expires_in or current_auth().engine.config.access_ttl
    return jsonify(
        {
            "data": {
                "token": token,
                "expires_in": int(ttl.total_seconds()),
                "payload": claims,
            }
        }
    ), 200
