from __future__ import annotations
import logging
from functools import wraps
from flask import request, g, abort, current_app

from auth_core.errors import InvalidToken

logger = logging.getLogger(__name__)


def current_auth():
    """AuthComponents built by create_app()."""
    return current_app.extensions["auth"]


def bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def jwt_required():
    """
    Stateless access-token check: signature, expiry and token type only.
    Missing token -> 401, invalid or expired token -> 403.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if token is None:
                abort(401, description="Access token required")
            try:
                claims = current_auth().engine.verify_access_token(token)
            except InvalidToken as e:
                logger.info("Access token rejected on %s: %s", request.path, e.reason)
                abort(403, description="Invalid or expired token")

            g.current_claims = claims
            g.current_user_id = claims.subject
            roles = claims.get("roles")
            g.current_user_roles = [r for r in roles if isinstance(r, str)] if isinstance(roles, list) else []
            g.current_session_id = claims.session_id
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator

def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = set(getattr(g, "current_user_roles", None) or [])
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
