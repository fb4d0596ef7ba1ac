from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ladder.utils.ids import new_id


class User(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)  # E.164 once normalised
    password_hash: str

    # Reciprocal partner link (A.partner_id == B.id and B.partner_id == A.id)
    partner_id: Optional[str] = Field(default=None, foreign_key="user.id", index=True)
    ladder_id: Optional[str] = Field(default=None, foreign_key="ladder.id", index=True)

    email_verified: bool = Field(default=False)
    email_verification_token: Optional[str] = Field(default=None, index=True)
    email_verification_expiry: Optional[datetime] = Field(default=None)

    # Password-reset one-time code
    otp_code: Optional[str] = Field(default=None)
    otp_expiry: Optional[datetime] = Field(default=None)

    notification_preference: str = Field(default="email")  # email | sms
    receive_updates: bool = Field(default=True)
    receive_match_notifications: bool = Field(default=True)
    receive_marketing: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
