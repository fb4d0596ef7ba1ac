from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ladder.utils.ids import new_id


class Match(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    start_at: datetime = Field(index=True)
    # Canonical pair: team1_id < team2_id
    team1_id: str = Field(index=True)
    team2_id: str = Field(index=True)
    ladder_id: Optional[str] = Field(default=None, foreign_key="ladder.id", index=True)

    confirmed: bool = Field(default=True)
    completed: bool = Field(default=False)

    team1_score: Optional[int] = Field(default=None)
    team2_score: Optional[int] = Field(default=None)
    team1_detailed_score: Optional[str] = Field(default=None)  # "6,3,X"
    team2_detailed_score: Optional[str] = Field(default=None)

    reminder_sent_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
