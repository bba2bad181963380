"""
Composition root: wires store, token engine, session manager, notifier and
AuthService together from a flat config mapping (the Flask app config, or
any dict with the same keys).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from auth_core.errors import ConfigurationError
from auth_core.notifications import MailConfig, NotificationDispatcher, NotificationGateway
from auth_core.service import AuthService
from auth_core.sessions import SessionManager
from auth_core.tokens import TokenConfig, TokenEngine
from models.credential_store import CredentialStore
from models.db_storage import DBStorage
from utils.security import PasswordHasher, parse_duration


@dataclass
class AuthComponents:
    storage: DBStorage
    store: CredentialStore
    engine: TokenEngine
    sessions: SessionManager
    service: AuthService
    notifier: Any

    def close(self) -> None:
        if hasattr(self.notifier, "shutdown"):
            self.notifier.shutdown(wait=True)
        self.storage.dispose()


def build_auth_service(config: Mapping[str, Any], notifier=None, clock=None) -> AuthComponents:
    """Validate `config` and assemble every component. Fails fast on bad config."""
    token_config = TokenConfig.from_mapping(config)
    try:
        reset_ttl = parse_duration(config.get("RESET_TOKEN_EXPIRES", "1h"))
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    storage = DBStorage(
        config.get("DATABASE_URL", "sqlite:///auth.db"),
        timeout=float(config.get("STORE_TIMEOUT_SECONDS", 5)),
        echo=bool(config.get("DB_ECHO", False)),
    )
    storage.reload()
    store = CredentialStore(storage, max_tokens_per_user=config.get("MAX_REFRESH_TOKENS_PER_USER"))

    engine = TokenEngine(token_config, clock=clock) if clock else TokenEngine(token_config)
    sessions = SessionManager(engine, store)
    hasher = PasswordHasher(
        time_cost=int(config.get("ARGON2_TIME_COST", 3)),
        memory_cost=int(config.get("ARGON2_MEMORY_COST", 65536)),
        parallelism=int(config.get("ARGON2_PARALLELISM", 4)),
    )
    if notifier is None:
        gateway = NotificationGateway(MailConfig.from_mapping(config))
        notifier = NotificationDispatcher(gateway, max_workers=int(config.get("NOTIFY_WORKERS", 2)))

    service = AuthService(store, engine, sessions, hasher, notifier, reset_token_ttl=reset_ttl)
    return AuthComponents(storage, store, engine, sessions, service, notifier)


