from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

AVAILABLE = "available"
NOT_AVAILABLE = "not_available"


class Availability(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("user_id", "start_at", name="uq_availability_user_slot"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    start_at: datetime  # half-hour slot start, naive UTC
    week_start: datetime = Field(index=True)  # Monday 00:00 UTC
    availability: str = Field(default=AVAILABLE)  # available | not_available
    # NULL or user_id -> self-set; anything else -> partner/proxy-set
    set_by_user_id: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_self_set(self) -> bool:
        return self.set_by_user_id is None or self.set_by_user_id == self.user_id
