import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ladder.database import get_session
from ladder.services import weather_service
from ladder.services.match_lifecycle import get_match
from ladder.utils.time_slots import parse_iso, slot_key

logger = logging.getLogger(__name__)

router = APIRouter()

MATCH_LENGTH = timedelta(hours=2)


@router.get("/weather/hourly")
def hourly_weather(
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Cached forecast rows between two timestamps, inclusive."""
    rows = weather_service.hourly_between(session, parse_iso(start, "start"), parse_iso(end, "end"))
    data = []
    for row in rows:
        item = weather_service.summarize(row)
        item["datetime"] = slot_key(row.forecast_at)
        data.append(item)
    return {"success": True, "data": data}


@router.get("/weather/match/{match_id}")
def match_weather(match_id: str, session: Session = Depends(get_session)):
    match = get_match(session, match_id)
    forecast = weather_service.match_forecast(session, match.start_at, match.start_at + MATCH_LENGTH)
    if forecast is not None:
        for detail in forecast["details"]:
            detail["datetime"] = slot_key(detail["datetime"])
    return {"matchId": match.id, "forecast": forecast}
