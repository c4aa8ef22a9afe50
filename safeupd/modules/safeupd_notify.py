#!/usr/bin/env python3
# safeupd_notify.py
"""
safeupd_notify.py — e-mail notifications to the host administrator

 - renders Subject / From / To / body as an RFC 5322 message
 - SMTP transport with implicit TLS ("ssl", the default), STARTTLS or plain
 - bounded connect/operation timeout (mail.timeout, 30s by default)
 - transport failures are logged and reported as False, never raised
 - message templates for escalations and operational errors
"""

from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, formatdate
from typing import Any, Tuple

from safeupd.modules.safeupd_decision import (
    REASON_DIST_UPGRADE_REMOVES,
    REASON_REMOVAL_OR_CONFLICT,
    REASON_REMOVAL_OR_MANUAL,
    REASON_UNRECOGNIZED,
    Verdict,
)

ESCALATION_SUBJECT = "[{host}] Manual intervention required for system update"
ERROR_SUBJECT = "[{host}] Error during system update"

ESCALATION_REASONS = {
    REASON_REMOVAL_OR_MANUAL: "requires manual intervention because packages would be removed or require manual handling.",
    REASON_REMOVAL_OR_CONFLICT: "requires manual intervention because packages would be removed or there are conflicts.",
    REASON_DIST_UPGRADE_REMOVES: "has packages kept back, and using dist-upgrade would remove packages.",
    REASON_UNRECOGNIZED: "requires manual intervention because the package manager output could not be confirmed as safe.",
}


def escalation_message(host: str, verdict: Verdict) -> Tuple[str, str]:
    why = ESCALATION_REASONS.get(verdict.reason, f"requires manual intervention ({verdict.reason}).")
    if verdict.reason == REASON_DIST_UPGRADE_REMOVES:
        body = f"The system update on {host} {why}\n\n{verdict.detail}"
    else:
        body = f"The system update on {host} {why}\n\nDetails:\n{verdict.detail}"
    return ESCALATION_SUBJECT.format(host=host), body


def error_message(host: str, message: str, log_file: Any) -> Tuple[str, str]:
    body = (
        f"An error occurred during the system update process on {host}:\n\n"
        f"{message}\n\n"
        f"Please check {log_file} for details."
    )
    return ERROR_SUBJECT.format(host=host), body


class Notifier:
    """Sends one message per call; counts attempts so callers can assert exactly-once delivery."""

    def __init__(self, cfg: Any, logger: Any = None):
        self.cfg = cfg
        self.logger = logger
        self.attempts = 0

    def _log(self, level: str, event: str, message: str, **meta: Any) -> None:
        if self.logger:
            getattr(self.logger, level)(event, message, **meta)

    def render(self, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.cfg.sender_name, self.cfg.smtp_user))
        msg["To"] = formataddr((self.cfg.recipient_name, self.cfg.admin_email))
        msg["Date"] = formatdate(localtime=True)
        msg.set_content(body)
        return msg

    def _connect(self) -> smtplib.SMTP:
        cfg = self.cfg
        if cfg.smtp_security == "ssl":
            return smtplib.SMTP_SSL(cfg.smtp_server, cfg.smtp_port, timeout=cfg.smtp_timeout, context=ssl.create_default_context())
        smtp = smtplib.SMTP(cfg.smtp_server, cfg.smtp_port, timeout=cfg.smtp_timeout)
        if cfg.smtp_security == "starttls":
            try:
                smtp.starttls(context=ssl.create_default_context())
            except (smtplib.SMTPException, OSError):
                smtp.close()
                raise
        return smtp

    def send(self, subject: str, body: str) -> bool:
        self.attempts += 1
        if not self.cfg.mail_enabled:
            self._log("warning", "notify.disabled", f"Mail disabled; notification not sent: {subject}")
            return False

        msg = self.render(subject, body)
        try:
            with self._connect() as smtp:
                if self.cfg.smtp_user and self.cfg.smtp_password:
                    smtp.login(self.cfg.smtp_user, self.cfg.smtp_password)
                smtp.send_message(msg, from_addr=self.cfg.smtp_user, to_addrs=[self.cfg.admin_email])
        except (smtplib.SMTPException, OSError) as e:
            self._log("error", "notify.failed", f"Failed to send email to {self.cfg.admin_email}", error=str(e))
            return False
        self._log("info", "notify.sent", f"Email sent to {self.cfg.admin_email}", subject=subject)
        return True
