"""Email delivery for rendered HTML reports.

Uses stdlib smtplib with STARTTLS. All functions are designed to never
raise: they return success/failure booleans and log errors.
"""

import logging
import smtplib
from email.mime.text import MIMEText

from appinsights_report.config import Settings

logger = logging.getLogger(__name__)


def is_email_configured(settings: Settings) -> bool:
    """Check whether all required SMTP settings are present."""
    return bool(
        settings.smtp_host and settings.smtp_username and settings.smtp_password and settings.report_recipient_email
    )


def send_report_email(settings: Settings, html_report: str, subject: str | None = None) -> bool:
    """Send the HTML report via SMTP with STARTTLS.

    Args:
        settings: Application settings (SMTP host, credentials, recipient).
        html_report: The rendered report document.
        subject: Optional email subject. Defaults to one naming the application.

    Returns:
        True if the email was sent successfully, False otherwise.
    """
    if not is_email_configured(settings):
        logger.warning("Email not configured, skipping send")
        return False

    if subject is None:
        subject = f"Application Insights Report: {settings.app_name}"

    msg = MIMEText(html_report, "html", "utf-8")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_username
    msg["To"] = settings.report_recipient_email

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            _ = server.starttls()
            server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(msg)
        logger.info("Report email sent to %s", settings.report_recipient_email)
        return True
    except Exception:
        logger.exception("Failed to send report email")
        return False
