"""
Email service — sends email via SMTP or logs to console.

Uses EMAIL_BACKEND config to choose transport:
  - "log" (default): prints email to console/log
  - "smtp": sends via SMTP using MAIL_* settings
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app

logger = logging.getLogger(__name__)


class EmailService:
    @staticmethod
    def send(to: str, subject: str, body_html: str) -> bool:
        """Send an email. Returns True on success."""
        backend = current_app.config.get("EMAIL_BACKEND", "log")

        if backend == "log":
            logger.info(
                "EMAIL [to=%s] subject=%s\n%s",
                to, subject, body_html,
            )
            return True

        config = {
            "mail_from": current_app.config.get("MAIL_FROM", "noreply@mathmastery.ma"),
            "mail_server": current_app.config.get("MAIL_SERVER", "localhost"),
            "mail_port": current_app.config.get("MAIL_PORT", 587),
            "mail_username": current_app.config.get("MAIL_USERNAME", ""),
            "mail_password": current_app.config.get("MAIL_PASSWORD", ""),
        }
        return EmailService._do_send(to, subject, body_html, config)

    @staticmethod
    def send_confirmation(to: str, user_id: str, token: str) -> bool:
        base = current_app.config.get("BASE_URL", "http://localhost:5001")
        confirm_url = f"{base}/auth/confirm/{user_id}/{token}"
        return EmailService.send(
            to,
            "Confirmez votre adresse email — Math Mastery",
            "<p>Bienvenue sur Math Mastery !</p>"
            "<p>Cliquez sur le lien ci-dessous pour confirmer votre adresse email :</p>"
            f'<p><a href="{confirm_url}">{confirm_url}</a></p>'
            "<p>Si vous n'êtes pas à l'origine de cette inscription, ignorez cet email.</p>",
        )

    @staticmethod
    def _do_send(to: str, subject: str, body_html: str, config: dict) -> bool:
        """Actual SMTP send, no Flask context required."""
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = config.get("mail_from", "noreply@mathmastery.ma")
            msg["To"] = to
            msg.attach(MIMEText(body_html, "html"))

            server = config.get("mail_server", "localhost")
            port = config.get("mail_port", 587)
            username = config.get("mail_username", "")
            password = config.get("mail_password", "")

            with smtplib.SMTP(server, port) as smtp:
                smtp.starttls()
                if username and password:
                    smtp.login(username, password)
                smtp.send_message(msg)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed: %s", e)
            return False
