"""
Scheduled jobs, triggered by an external cron with ``Authorization: Bearer $CRON_SECRET``.

Both jobs are safe to re-run: the weather refresh upserts by hour and a
match reminder is sent at most once per match.
"""
import logging
import os
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from ladder.database import get_session
from ladder.errors import UnauthorizedError
from ladder.services import match_lifecycle, weather_service
from ladder.services.notifications import Notifier, build_reminder_event, get_notifier
from ladder.utils.clock import get_now

logger = logging.getLogger(__name__)

router = APIRouter()


def require_cron_secret(request: Request) -> None:
    secret = os.getenv("CRON_SECRET", "development-secret")
    if request.headers.get("Authorization") != f"Bearer {secret}":
        raise UnauthorizedError("unauthorized")


@router.post("/cron/weather", dependencies=[Depends(require_cron_secret)])
def refresh_weather(
    session: Session = Depends(get_session),
    now: datetime = Depends(get_now),
):
    try:
        result = weather_service.refresh_forecast(session, now)
    except weather_service.WeatherFetchError as e:
        logger.error(f"Weather refresh failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch weather forecast")
    return {"success": True, **result}


@router.post("/cron/match-reminders", dependencies=[Depends(require_cron_secret)])
def send_match_reminders(
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    """Text every member with a phone about matches starting within the hour."""
    matches = match_lifecycle.due_for_reminder(session, now)
    sent = 0
    failed = 0
    for match in matches:
        event = build_reminder_event(session, match)
        if event.recipients:
            result = notifier.notify(event)
            sent += result.delivered
            failed += len(result.errors)
            if result.errors:
                logger.error(f"Reminder for match {match.id} had failures: {'; '.join(result.errors)}")
        match_lifecycle.mark_reminded(session, match, now)

    logger.info(f"Match reminders: {len(matches)} match(es), {sent} sent, {failed} failed")
    return {"success": True, "matches": len(matches), "sent": sent, "failed": failed}
