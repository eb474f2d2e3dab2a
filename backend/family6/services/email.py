"""
Email service for account confirmation and password reset links via SMTP.

Uses the SMTP settings from family6.core.config.settings.
Gracefully fails (logs warning) if SMTP is not configured.
"""

import html
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from family6.core.config import settings

logger = logging.getLogger(__name__)


def _smtp_configured() -> bool:
    return bool(settings.SMTP_SERVER and settings.SMTP_USERNAME)


def _wrap_html(title: str, body: str) -> str:
    return f"""
    <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 560px; margin: 0 auto; padding: 32px 24px; background: #f7f7fb; color: #222;">
        <div style="text-align: center; margin-bottom: 24px;">
            <h1 style="color: #4f46e5; font-size: 26px; margin: 0;">{settings.APP_NAME}</h1>
        </div>
        <div style="background: #fff; border: 1px solid #e5e7eb; border-radius: 12px; padding: 24px;">
            <h2 style="font-size: 18px; margin: 0 0 16px 0;">{title}</h2>
            {body}
        </div>
    </div>
    """


def _button(link: str, label: str) -> str:
    return (
        f'<a href="{html.escape(link)}" style="display: inline-block; background: #4f46e5; color: #fff; '
        f'text-decoration: none; padding: 12px 32px; border-radius: 8px; font-weight: 600; '
        f'font-size: 14px;">{label}</a>'
    )


def send_email(to_email: str, subject: str, text_body: str, html_body: str) -> bool:
    """
    Deliver one multipart (text + HTML) message.

    Returns True if sent successfully, False otherwise.
    This is a synchronous function; call from a background thread.
    """
    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.APP_NAME} <{settings.SMTP_USERNAME}>"
        msg["To"] = to_email

        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_USERNAME, to_email, msg.as_string())
        return True

    except Exception as e:
        logger.error("Failed to send '%s' to %s: %s", subject, to_email, e)
        return False


def send_verification_email(to_email: str, username: str, confirm_link: str) -> bool:
    """Send the signup confirmation link. The link works once."""
    if not _smtp_configured():
        logger.warning("SMTP not configured, skipping verification email to %s", to_email)
        return False

    subject = f"Confirm your {settings.APP_NAME} account"
    html_body = _wrap_html("Confirm your email", f"""
            <p style="font-size: 14px; line-height: 1.6; margin: 0 0 20px 0;">
                Hi <strong>{html.escape(username)}</strong>, thanks for signing up. Confirm your email address to activate your account.
            </p>
            {_button(confirm_link, "Confirm my email")}
            <p style="color: #666; font-size: 12px; margin: 20px 0 0 0; word-break: break-all;">{html.escape(confirm_link)}</p>
    """)
    text_body = f"""
Welcome to {settings.APP_NAME}, {username}!

Confirm your email address by opening this link:

{confirm_link}
    """.strip()

    sent = send_email(to_email, subject, text_body, html_body)
    if sent:
        logger.info("Verification email sent to %s", to_email)
    return sent


def send_password_reset_email(to_email: str, username: str, reset_link: str) -> bool:
    """Send a password reset link, valid for RESET_TOKEN_HOURS."""
    if not _smtp_configured():
        logger.warning("SMTP not configured, skipping password reset email to %s", to_email)
        return False

    hours = settings.RESET_TOKEN_HOURS
    subject = f"Reset your {settings.APP_NAME} password"
    html_body = _wrap_html("Password reset request", f"""
            <p style="font-size: 14px; line-height: 1.6; margin: 0 0 20px 0;">
                Hi <strong>{html.escape(username)}</strong>, we received a request to reset your password.
                This link expires in <strong>{hours} hours</strong>.
            </p>
            {_button(reset_link, "Reset my password")}
            <p style="color: #b45309; font-size: 13px; margin: 20px 0 0 0;">
                If you didn't request a password reset, you can safely ignore this email.
            </p>
    """)
    text_body = f"""
Password reset for {settings.APP_NAME}

Hi {username},

Use the link below to choose a new password (expires in {hours} hours):

{reset_link}

If you didn't request this, you can safely ignore this email.
    """.strip()

    sent = send_email(to_email, subject, text_body, html_body)
    if sent:
        logger.info("Password reset email sent to %s", to_email)
    return sent
