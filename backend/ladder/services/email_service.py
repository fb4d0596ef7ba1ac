"""Resend email wrapper and message templates.

Without RESEND_API_KEY the service runs in dry-run mode: messages are logged
and reported as delivered.
"""

import logging
import os
from datetime import datetime
from html import escape
from typing import Optional, Tuple

import resend

logger = logging.getLogger(__name__)

APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")


def email_wrap(body_html: str, footer_text: str = "Tennis Ladder") -> str:
    """Wrap email body in a consistent layout."""
    return f"""<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #1f2937;">
  <h2 style="color: #059669;">🎾 Tennis Ladder</h2>
  {body_html}
  <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;">
  <p style="color: #9ca3af; font-size: 12px;">{escape(footer_text)}</p>
</div>"""


def format_match_time(start_at: datetime) -> str:
    """e.g. 'Monday 2 June 2025, 18:00 UTC'."""
    return f"{start_at:%A} {start_at.day} {start_at:%B %Y, %H:%M} UTC"


def sms_opt_in_url(user_id: str, match_id: str) -> str:
    return f"{APP_BASE_URL}/api/sms/opt-in?userId={user_id}&matchId={match_id}"


def match_confirmed_email(
    recipient_name: str,
    recipient_id: str,
    has_phone: bool,
    my_team: str,
    opponents: str,
    match_id: str,
    start_at: datetime,
) -> Tuple[str, str]:
    when = format_match_time(start_at)
    opt_in = ""
    if not has_phone:
        opt_in = (
            '<div style="background: #f0f9ff; padding: 16px; border-radius: 8px;">'
            "<p><strong>📱 Want SMS Reminders?</strong> Get a reminder 1 hour before your match.</p>"
            f'<a href="{sms_opt_in_url(recipient_id, match_id)}">Enable SMS Reminders</a>'
            "</div>"
        )
    body = (
        f"<p>Hi {escape(recipient_name)}!</p>"
        "<p>Your tennis match has been scheduled.</p>"
        f"<p><strong>Date &amp; Time:</strong> {when}<br>"
        f"<strong>Your Team:</strong> {escape(my_team)}<br>"
        f"<strong>Opponents:</strong> {escape(opponents)}<br>"
        f"<strong>Match ID:</strong> #{match_id[-6:]}</p>"
        f"{opt_in}"
        f'<p><a href="{APP_BASE_URL}/scoring">View Match Details</a></p>'
    )
    return f"🎾 Match Confirmed - {my_team} vs {opponents}", email_wrap(body)


def match_cancelled_email(
    recipient_name: str, my_team: str, opponents: str, start_at: datetime, reason: Optional[str]
) -> Tuple[str, str]:
    reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    body = (
        f"<p>Hi {escape(recipient_name)},</p>"
        f"<p>Your match against <strong>{escape(opponents)}</strong> on "
        f"{format_match_time(start_at)} has been cancelled.</p>"
        f"{reason_html}"
        f'<p><a href="{APP_BASE_URL}">Find another slot</a></p>'
    )
    return f"Match Cancelled - {my_team} vs {opponents}", email_wrap(body)


def verification_email(recipient_name: str, token: str) -> Tuple[str, str]:
    link = f"{APP_BASE_URL}/api/auth/verify-email?token={token}"
    body = (
        f"<p>Hi {escape(recipient_name)},</p>"
        "<p>Please confirm your email address to activate your account. "
        "The link is valid for 24 hours.</p>"
        f'<p><a href="{link}">Verify Email</a></p>'
    )
    return "Verify your Tennis Ladder account", email_wrap(body)


def password_reset_email(recipient_name: str, otp_code: str) -> Tuple[str, str]:
    body = (
        f"<p>Hi {escape(recipient_name)},</p>"
        f'<p>Your password reset code is <strong style="font-size: 20px;">{otp_code}</strong>.</p>'
        "<p>It expires in 10 minutes. If you did not ask for this, ignore this email.</p>"
    )
    return "Your Tennis Ladder password reset code", email_wrap(body)


class EmailService:
    """
    Wrapper around the Resend API.

    Reads RESEND_API_KEY and EMAIL_FROM from the environment; without an API
    key it logs instead of sending.
    """

    def __init__(self, api_key: Optional[str] = None, from_address: Optional[str] = None):
        self.api_key = api_key if api_key is not None else os.getenv("RESEND_API_KEY", "")
        self.from_address = from_address or os.getenv(
            "EMAIL_FROM", "Tennis Ladder <noreply@tennisladder.app>"
        )
        self.dry_run = not self.api_key
        if self.dry_run:
            logger.warning("RESEND_API_KEY not configured. Emails will be logged, not sent.")
        else:
            resend.api_key = self.api_key

    def send(self, to: str, subject: str, html: str) -> dict:
        """Send one email. Returns dict with keys: id, status, error."""
        if self.dry_run:
            logger.info(f"[DRY RUN] Email to {to}: {subject}")
            return {"id": None, "status": "dry_run", "error": None}
        try:
            sent = resend.Emails.send(
                {
                    "from": self.from_address,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                }
            )
            return {"id": sent.get("id") if isinstance(sent, dict) else None, "status": "sent", "error": None}
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return {"id": None, "status": "failed", "error": str(e)}


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the singleton EmailService instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
