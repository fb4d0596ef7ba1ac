"""SMS log model for tracking sent messages."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class SmsLog(SQLModel, table=True):
    """Log of every SMS sent through the system."""

    __tablename__ = "sms_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    match_id: Optional[str] = Field(default=None)
    phone_number: str  # Recipient phone in E.164 format
    message_body: str
    message_type: str  # match_reminder|password_reset_otp
    twilio_sid: Optional[str] = Field(default=None)
    status: str = Field(default="queued")  # queued|sent|dry_run|failed
    error_message: Optional[str] = Field(default=None)
    trigger: str = Field(default="auto")  # manual|auto
    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
