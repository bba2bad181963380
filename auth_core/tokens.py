"""
Token Engine: issues and verifies access and refresh JWTs (PyJWT, HMAC).

Access and refresh tokens are signed with different secrets and carry a
``type`` claim, so an access token can never be replayed as a refresh token.

Two result types keep trust levels apart:
  VerifiedClaims  only produced by verify_access_token / verify_refresh_token
  DecodedToken    produced by decode_token, signature and expiry NOT checked

Authorization code must only ever accept VerifiedClaims.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import jwt

from auth_core.errors import ConfigurationError, InvalidToken, Malformed
from utils.security import generate_jti, parse_duration

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")
MIN_SECRET_LENGTH = 32

# Claims the engine owns; callers cannot override them through `claims`.
RESERVED_CLAIMS = ("iat", "exp", "nbf", "jti", "type")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenConfig:
    """Every option the token engine recognizes, with its default."""

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    issuer: Optional[str] = None
    leeway: timedelta = timedelta(seconds=0)

    def __post_init__(self):
        if not self.access_secret or not self.refresh_secret:
            raise ConfigurationError("JWT access and refresh secrets are required")
        if self.access_secret == self.refresh_secret:
            raise ConfigurationError("JWT access and refresh secrets must differ")
        for name in ("access_secret", "refresh_secret"):
            if len(getattr(self, name)) < MIN_SECRET_LENGTH:
                raise ConfigurationError(f"{name} must be at least {MIN_SECRET_LENGTH} characters")
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(f"Unsupported JWT algorithm: {self.algorithm}")
        if self.access_ttl <= timedelta(0) or self.refresh_ttl <= timedelta(0):
            raise ConfigurationError("Token lifetimes must be positive")
        if self.leeway < timedelta(0):
            raise ConfigurationError("JWT leeway cannot be negative")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "TokenConfig":
        """Build from a Flask-style config mapping (JWT_* keys)."""
        try:
            return cls(
                access_secret=config.get("JWT_ACCESS_SECRET") or "",
                refresh_secret=config.get("JWT_REFRESH_SECRET") or "",
                algorithm=config.get("JWT_ALGORITHM", "HS256"),
                access_ttl=parse_duration(config.get("ACCESS_TOKEN_EXPIRES", "15m")),
                refresh_ttl=parse_duration(config.get("REFRESH_TOKEN_EXPIRES", "7d")),
                issuer=config.get("JWT_ISSUER") or None,
                leeway=parse_duration(config.get("JWT_LEEWAY_SECONDS", 0)),
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


@dataclass(frozen=True)
class VerifiedClaims:
    subject: str
    token_type: str
    issued_at: datetime
    expires_at: datetime
    jti: Optional[str]
    session_id: Optional[str]
    claims: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default=None):
        return self.claims.get(key, default)


@dataclass(frozen=True)
class DecodedToken:
    """Untrusted view of a token. Never use for access control."""

    header: Dict[str, Any]
    claims: Dict[str, Any]

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get("sub")


class TokenEngine:
    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = _utcnow):
        self.config = config
        self._clock = clock

    # -- issuance ---------------------------------------------------------

    def issue_access_token(self, claims: Mapping[str, Any], ttl: Optional[timedelta] = None) -> str:
        return self._issue(claims, self.config.access_ttl if ttl is None else ttl, ACCESS, self.config.access_secret)

    def issue_refresh_token(self, claims: Mapping[str, Any], ttl: Optional[timedelta] = None) -> str:
        return self._issue(claims, self.config.refresh_ttl if ttl is None else ttl, REFRESH, self.config.refresh_secret)

    def _issue(self, claims: Mapping[str, Any], ttl: timedelta, token_type: str, secret: str) -> str:
        if not claims.get("sub"):
            raise ValueError("claims must include a subject ('sub')")
        if ttl <= timedelta(0):
            raise ValueError(f"token lifetime must be positive, got {ttl}")
        now = self._clock()
        payload = {k: v for k, v in claims.items() if k not in RESERVED_CLAIMS}
        payload["sub"] = str(claims["sub"])
        if self.config.issuer and "iss" not in payload:
            payload["iss"] = self.config.issuer
        payload.update(
            {
                "iat": int(now.timestamp()),
                "exp": int((now + ttl).timestamp()),
                "jti": generate_jti(),
                "type": token_type,
            }
        )
        return jwt.encode(payload, secret, algorithm=self.config.algorithm)

    # -- verification -----------------------------------------------------

    def verify_access_token(self, token: str) -> VerifiedClaims:
        return self._verify(token, ACCESS, self.config.access_secret)

    def verify_refresh_token(self, token: str) -> VerifiedClaims:
        """Signature and expiry only. Store-side revocation is SessionManager's job."""
        return self._verify(token, REFRESH, self.config.refresh_secret)

    def _verify(self, token: str, expected_type: str, secret: str) -> VerifiedClaims:
        if not token or not isinstance(token, str):
            raise InvalidToken("malformed", "Token is missing")
        options = {"require": ["exp", "iat", "sub"]}
        kwargs = {"leeway": self.config.leeway}
        if self.config.issuer:
            kwargs["issuer"] = self.config.issuer
        try:
            decoded = jwt.decode(token, secret, algorithms=[self.config.algorithm], options=options, **kwargs)
        except jwt.ExpiredSignatureError:
            raise InvalidToken("expired", "Token expired")
        except jwt.InvalidSignatureError:
            raise InvalidToken("bad_signature", "Token signature is invalid")
        except jwt.DecodeError:
            raise InvalidToken("malformed", "Token is malformed")
        except jwt.InvalidTokenError as exc:
            raise InvalidToken("invalid", f"Invalid token: {exc}")

        if decoded.get("type") != expected_type:
            raise InvalidToken("wrong_type", "Wrong token type")

        return VerifiedClaims(
            subject=str(decoded["sub"]),
            token_type=decoded["type"],
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
            jti=decoded.get("jti"),
            session_id=decoded.get("sid"),
            claims=dict(decoded),
        )

    # -- inspection -------------------------------------------------------

    def decode_token(self, token: str) -> DecodedToken:
        """Parse without verifying signature or expiry."""
        if not token or not isinstance(token, str):
            raise Malformed()
        try:
            header = jwt.get_unverified_header(token)
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as exc:
            raise Malformed(f"Token is not a well-formed JWT: {exc}")
        return DecodedToken(header=header, claims=claims)

    def describe(self, decoded: DecodedToken, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or self._clock()
        claims = decoded.claims

        def _iso(ts):
            return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat() if ts else None

        info = {
            "type": decoded.header.get("typ", "JWT"),
            "algorithm": decoded.header.get("alg"),
            "token_type": claims.get("type"),
            "issued_at": _iso(claims.get("iat")),
            "expires_at": _iso(claims.get("exp")),
            "subject": claims.get("sub"),
            "issuer": claims.get("iss"),
            "audience": claims.get("aud"),
            "payload": claims,
        }
        if claims.get("exp"):
            remaining = int(claims["exp"] - now.timestamp())
            info["expired"] = remaining < 0
            info["valid_for"] = remaining
        return info
