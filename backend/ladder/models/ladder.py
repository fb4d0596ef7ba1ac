from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from ladder.utils.ids import new_id

DEFAULT_MATCH_FORMAT: Dict[str, Any] = {"sets": 3, "gamesPerSet": 6, "winnerBy": "sets"}


class Ladder(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    number: int = Field(unique=True, index=True)  # 1 = top ladder
    end_date: datetime
    is_active: bool = Field(default=True)
    # {"sets": int, "gamesPerSet": int, "winnerBy": "sets" | "games"}
    match_format: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=datetime.utcnow)
