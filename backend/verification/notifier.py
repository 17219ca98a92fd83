"""
Out-of-band delivery of verification codes.

Why:
    The core only depends on the success/failure contract of `send`. Which
    transport runs is a configuration choice: `SmtpEmailNotifier` for real
    mail, `ConsoleNotifier` for local development (logs the code and always
    succeeds). The development behaviour is a selectable implementation, not a
    branch inside the use cases.

Contract:
    send(destination, code) -> DeliveryReceipt. Implementations never raise for
    transport problems; any non-success receipt is a delivery failure. There
    is no retry here; retry policy belongs to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol
import logging
import re
import smtplib
import ssl

from .config import SmtpSettings, VerificationSettings

logger = logging.getLogger("schoolgate.verification.notifier")

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CODE_EMAIL_SUBJECT = "Ihr Bestätigungscode"

CODE_EMAIL_TEXT = """Hallo,

Ihr Bestätigungscode lautet: {code}

Der Code ist {ttl_minutes} Minuten gültig. Wenn Sie keinen Code angefordert
haben, können Sie diese E-Mail ignorieren.
"""


@dataclass(frozen=True)
class DeliveryReceipt:
    success: bool
    error: Optional[str] = None
    development_code: Optional[str] = None


class Notifier(Protocol):
    def send(self, destination: str, code: str) -> DeliveryReceipt: ...


def is_valid_email(address: object) -> bool:
    return isinstance(address, str) and bool(_EMAIL_PATTERN.match(address.strip()))


def mask_email(address: str) -> str:
    """Hide the middle of the local part: `ab***@example.org`."""
    local, sep, domain = address.rpartition("@")
    if not sep or not local:
        return "***"
    return f"{local[:2]}***@{domain}"


class ConsoleNotifier:
    """Development notifier: logs the code and reports success."""

    def send(self, destination: str, code: str) -> DeliveryReceipt:
        logger.info("Development mode: verification code for %s is %s", mask_email(destination), code)
        return DeliveryReceipt(success=True, development_code=code)


class SmtpEmailNotifier:
    def __init__(self, smtp: SmtpSettings, *, code_ttl_ms: int):
        self._smtp = smtp
        self._ttl_minutes = max(1, code_ttl_ms // 60000)

    def _create_message(self, to_email: str, code: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = CODE_EMAIL_SUBJECT
        msg["From"] = f"{self._smtp.from_name} <{self._smtp.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(CODE_EMAIL_TEXT.format(code=code, ttl_minutes=self._ttl_minutes), "plain", "utf-8"))
        return msg

    def _deliver(self, message: MIMEMultipart) -> None:
        cfg = self._smtp
        if cfg.use_tls and not cfg.starttls:
            # Implicit TLS (port 465)
            with smtplib.SMTP_SSL(cfg.host, cfg.port, context=ssl.create_default_context(), timeout=cfg.timeout) as server:
                if cfg.user:
                    server.login(cfg.user, cfg.password)
                server.send_message(message)
            return
        with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as server:
            if cfg.starttls:
                server.starttls(context=ssl.create_default_context())
            if cfg.user:
                server.login(cfg.user, cfg.password)
            server.send_message(message)

    def send(self, destination: str, code: str) -> DeliveryReceipt:
        if not self._smtp.host:
            logger.error("SMTP host not configured")
            return DeliveryReceipt(success=False, error="smtp_not_configured")
        try:
            self._deliver(self._create_message(destination, code))
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send verification email to %s: %s", mask_email(destination), exc.__class__.__name__)
            return DeliveryReceipt(success=False, error="email_send_failed")
        logger.info("Verification email sent to %s", mask_email(destination))
        return DeliveryReceipt(success=True)


def build_notifier(settings: VerificationSettings) -> Notifier:
    """Select the notifier named by NOTIFIER_BACKEND (console | smtp)."""
    if settings.notifier_backend == "smtp":
        return SmtpEmailNotifier(settings.smtp, code_ttl_ms=settings.code_ttl_ms)
    return ConsoleNotifier()


__all__ = [
    "ConsoleNotifier",
    "DeliveryReceipt",
    "Notifier",
    "SmtpEmailNotifier",
    "build_notifier",
    "is_valid_email",
    "mask_email",
]
