"""
Notification gateway: password-reset, verification and welcome emails.

Sending never raises. When SMTP is not configured, or a send fails, the
message is written to the log instead (mock / fallback) and the result says so.

NotificationDispatcher runs sends on a small thread pool so the request path
never waits on SMTP; the outcome of each send is only logged.
"""
from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Callable, Mapping, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailConfig:
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    sender: str = "Auth Service <no-reply@localhost>"
    base_url: str = "http://localhost:3000"
    timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.host)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "MailConfig":
        return cls(
            host=config.get("SMTP_HOST") or None,
            port=int(config.get("SMTP_PORT", 587)),
            username=config.get("SMTP_USER") or None,
            password=config.get("SMTP_PASSWORD") or None,
            use_tls=bool(config.get("SMTP_USE_TLS", True)),
            sender=config.get("MAIL_FROM") or cls.sender,
            base_url=(config.get("APP_BASE_URL") or cls.base_url).rstrip("/"),
            timeout=float(config.get("MAIL_TIMEOUT_SECONDS", 10.0)),
        )


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    mock: bool = False
    error: Optional[str] = None


PASSWORD_RESET_TEMPLATE = """\
<h2>Password Reset Request</h2>
<p>You requested to reset your password. Follow the link below to choose a new one:</p>
<p><a href="{link}">Reset Password</a></p>
<p>This link will expire in 1 hour.</p>
<p>If you didn't request this, please ignore this email.</p>
"""

VERIFICATION_TEMPLATE = """\
<h2>Verify Your Email Address</h2>
<p>Thank you for signing up! Please verify your email address:</p>
<p><a href="{link}">Verify Email</a></p>
<p>If you didn't create an account, please ignore this email.</p>
"""

WELCOME_TEMPLATE = """\
<h2>Welcome aboard, {name}!</h2>
<p>Thank you for joining. If you have any questions, reply to this email.</p>
"""


class NotificationGateway:
    def __init__(self, config: MailConfig):
        self.config = config
        if not config.configured:
            logger.info("SMTP not configured; notifications will be logged only")

    def send_password_reset(self, email: str, token: str, user_id: str) -> NotificationResult:
        link = self._link("/reset-password", token=token, userId=user_id)
        return self._send(email, "Password Reset Request", PASSWORD_RESET_TEMPLATE.format(link=link), kind="password reset")

    def send_verification(self, email: str, token: str, user_id: str) -> NotificationResult:
        link = self._link("/verify-email", token=token, userId=user_id)
        return self._send(email, "Verify Your Email Address", VERIFICATION_TEMPLATE.format(link=link), kind="verification")

    def send_welcome(self, email: str, name: Optional[str]) -> NotificationResult:
        body = WELCOME_TEMPLATE.format(name=name or "there")
        return self._send(email, "Welcome!", body, kind="welcome")

    def _link(self, path: str, **params) -> str:
        return f"{self.config.base_url}{path}?{urlencode(params)}"

    def _send(self, to: str, subject: str, html: str, kind: str) -> NotificationResult:
        if not self.config.configured:
            logger.info("[MOCK] %s email for %s", kind, to)
            logger.debug("[MOCK] %s email body:\n%s", kind, html)
            return NotificationResult(success=True, mock=True)

        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
                if self.config.use_tls:
                    server.starttls()
                if self.config.username:
                    server.login(self.config.username, self.config.password or "")
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Failed to send %s email to %s: %s", kind, to, exc)
            logger.info("[FALLBACK] %s email for %s logged instead of sent", kind, to)
            return NotificationResult(success=False, mock=True, error=str(exc))

        logger.info("Sent %s email to %s", kind, to)
        return NotificationResult(success=True)


class NotificationDispatcher:
    """Fire-and-forget wrapper around a NotificationGateway."""

    def __init__(self, gateway: NotificationGateway, max_workers: int = 2):
        self.gateway = gateway
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def send_password_reset(self, email: str, token: str, user_id: str) -> Future:
        return self._submit("password reset", self.gateway.send_password_reset, email, token, user_id)

    def send_verification(self, email: str, token: str, user_id: str) -> Future:
        return self._submit("verification", self.gateway.send_verification, email, token, user_id)

    def send_welcome(self, email: str, name: Optional[str]) -> Future:
        return self._submit("welcome", self.gateway.send_welcome, email, name)

    def _submit(self, kind: str, fn: Callable[..., NotificationResult], *args) -> Future:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(lambda f: self._log_outcome(kind, f))
        return future

    @staticmethod
    def _log_outcome(kind: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("%s notification crashed", kind, exc_info=exc)
            return
        result = future.result()
        if not result.success:
            logger.warning("%s notification not delivered: %s", kind, result.error)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
