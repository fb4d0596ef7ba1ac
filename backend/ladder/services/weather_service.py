"""
Hourly weather cache backed by the Met Office site-specific point forecast.

The cron refresh keeps hours 06:00-22:00 UTC (the bookable grid) and upserts
by timestamp, so running it twice is harmless.
"""
import logging
import os
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
from sqlmodel import Session, select

from ladder.errors import BadRequestError
from ladder.models.weather import HourlyWeather
from ladder.utils.time_slots import GRID_FIRST_HOUR, GRID_LAST_HOUR, parse_iso

logger = logging.getLogger(__name__)

MET_OFFICE_HOURLY_URL = "https://data.hub.api.metoffice.gov.uk/sitespecific/v0/point/hourly"

WEATHER_CODES = {
    "0": "Clear night",
    "1": "Sunny day",
    "2": "Partly cloudy",
    "3": "Partly cloudy",
    "4": "Not used",
    "5": "Mist",
    "6": "Fog",
    "7": "Cloudy",
    "8": "Overcast",
    "9": "Light rain shower",
    "10": "Light rain",
    "11": "Drizzle",
    "12": "Light rain",
    "13": "Heavy rain shower",
    "14": "Heavy rain",
    "15": "Heavy rain",
    "16": "Sleet shower",
    "17": "Sleet",
    "18": "Hail shower",
    "19": "Hail",
    "20": "Light snow shower",
    "21": "Light snow",
    "22": "Heavy snow shower",
    "23": "Heavy snow",
    "24": "Ice shower",
    "25": "Ice",
    "26": "Thunder shower",
    "27": "Thunderstorm",
    "28": "Heavy rain and thunder",
    "29": "Light snow and thunder",
    "30": "Thunderstorm",
}


class WeatherFetchError(Exception):
    pass


def weather_description(code: Any) -> str:
    if code is None:
        return WEATHER_CODES["1"]
    return WEATHER_CODES.get(str(code), "Variable conditions")


def weather_emoji(weather_type: str) -> str:
    weather = weather_type.lower()
    if "clear" in weather or "sunny" in weather:
        return "☀️"
    if "partly cloudy" in weather:
        return "⛅"
    if "cloudy" in weather or "overcast" in weather:
        return "☁️"
    if "mist" in weather or "fog" in weather:
        return "🌫️"
    if "thunder" in weather:
        return "⛈️"
    if "drizzle" in weather or "light rain" in weather:
        return "🌦️"
    if "rain" in weather:
        return "🌧️"
    if "sleet" in weather or "hail" in weather:
        return "🌨️"
    if "snow" in weather:
        return "❄️"
    return "🌤️"


_ARROWS = ["⬆️", "↗️", "➡️", "↘️", "⬇️", "↙️", "⬅️", "↖️"]


def wind_direction_arrow(degrees: Optional[float]) -> str:
    """Arrow for the compass sector the wind blows from (N = 0)."""
    if degrees is None:
        return "💨"
    return _ARROWS[int(((degrees % 360) + 22.5) // 45) % 8]


def summarize(row: HourlyWeather) -> Dict[str, Any]:
    return {
        "datetime": row.forecast_at,
        "temperature": row.temperature,
        "feelsLikeTemperature": row.feels_like_temperature,
        "weatherType": row.weather_type,
        "precipitationProbability": row.precipitation_probability,
        "windSpeed": row.wind_speed,
        "windDirection": row.wind_direction,
        "windGust": row.wind_gust,
        "uvIndex": row.uv_index,
        "humidity": row.humidity,
        "emoji": weather_emoji(row.weather_type),
        "wind": f"{wind_direction_arrow(row.wind_direction)}{round(row.wind_speed or 0)}",
        "display": f"{round(row.temperature)}°",
    }


def parse_hourly_forecast(payload: Dict[str, Any], now: datetime) -> List[Dict[str, Any]]:
    """Pull grid-hour entries from a Met Office GeoJSON response."""
    features = payload.get("features") or []
    if not features:
        return []
    series = (features[0].get("properties") or {}).get("timeSeries") or []

    rows = []
    for entry in series:
        try:
            at = parse_iso(entry.get("time"), "time")
        except BadRequestError:
            logger.warning(f"Skipping forecast entry with bad time: {entry.get('time')!r}")
            continue
        if at < now.replace(minute=0, second=0, microsecond=0):
            continue
        if at.hour < GRID_FIRST_HOUR or at.hour > GRID_LAST_HOUR:
            continue
        if entry.get("screenTemperature") is None:
            continue
        rows.append(
            {
                "forecast_at": at,
                "temperature": entry["screenTemperature"],
                "feels_like_temperature": entry.get("feelsLikeTemperature"),
                "weather_type": weather_description(entry.get("significantWeatherCode")),
                "precipitation_probability": round(entry.get("probOfPrecipitation") or 0),
                "wind_speed": entry.get("windSpeed10m"),
                "wind_direction": round(entry.get("windDirectionFrom10m") or 0),
                "wind_gust": entry.get("windGustSpeed10m"),
                "uv_index": round(entry.get("uvIndex") or 0),
                "humidity": entry.get("screenRelativeHumidity"),
            }
        )
    return rows


def fetch_hourly_forecast() -> Dict[str, Any]:
    """GET the Met Office hourly point forecast for the configured location."""
    api_key = os.getenv("MET_OFFICE_API_KEY")
    if not api_key:
        raise WeatherFetchError("Met Office API key not configured")
    params = {
        "latitude": os.getenv("WEATHER_LATITUDE", "52.2928"),
        "longitude": os.getenv("WEATHER_LONGITUDE", "-1.5317"),
        "includeLocationName": "true",
    }
    try:
        with httpx.Client(timeout=15.0) as client:
            response = client.get(
                MET_OFFICE_HOURLY_URL,
                params=params,
                headers={"accept": "application/json", "apikey": api_key},
            )
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Met Office API error: {e.response.status_code} - {e.response.text}")
        raise WeatherFetchError(f"Met Office returned {e.response.status_code}")
    except httpx.RequestError as e:
        logger.error(f"Met Office request error: {str(e)}")
        raise WeatherFetchError("Met Office request failed")


def upsert_forecast(session: Session, rows: List[Dict[str, Any]], now: datetime) -> int:
    count = 0
    for data in rows:
        existing = session.exec(
            select(HourlyWeather).where(HourlyWeather.forecast_at == data["forecast_at"])
        ).first()
        if existing is None:
            existing = HourlyWeather(**data)
        else:
            for key, value in data.items():
                setattr(existing, key, value)
        existing.updated_at = now
        session.add(existing)
        count += 1
    session.commit()
    return count


def refresh_forecast(
    session: Session,
    now: datetime,
    fetch: Callable[[], Dict[str, Any]] = fetch_hourly_forecast,
) -> Dict[str, int]:
    """Fetch, upsert, and drop entries older than two days."""
    rows = parse_hourly_forecast(fetch(), now)
    updated = upsert_forecast(session, rows, now)

    cutoff = now - timedelta(days=2)
    stale = session.exec(select(HourlyWeather).where(HourlyWeather.forecast_at < cutoff)).all()
    for row in stale:
        session.delete(row)
    session.commit()

    logger.info(f"Weather cache refreshed: {updated} hour(s) upserted, {len(stale)} removed")
    return {"updated": updated, "removed": len(stale)}


def hourly_between(session: Session, start: datetime, end: datetime) -> List[HourlyWeather]:
    return list(
        session.exec(
            select(HourlyWeather)
            .where(HourlyWeather.forecast_at >= start)
            .where(HourlyWeather.forecast_at <= end)
            .order_by(HourlyWeather.forecast_at)
        ).all()
    )


def recommendation(avg_temp: float, max_precip: float, avg_wind: float) -> str:
    if max_precip > 70:
        return "⚠️ High chance of rain - consider rescheduling or indoor courts"
    if max_precip > 40:
        return "🌂 Possible rain - bring waterproofs and check conditions"
    if avg_wind > 15:
        return "💨 Windy conditions - expect challenging ball flight"
    if avg_temp < 5:
        return "🥶 Cold conditions - dress warmly and allow extra warm-up time"
    if avg_temp > 28:
        return "🌡️ Hot conditions - stay hydrated and take breaks"
    return "✅ Good conditions for tennis"


def match_forecast(session: Session, start: datetime, end: datetime) -> Optional[Dict[str, Any]]:
    rows = hourly_between(session, start, end)
    if not rows:
        return None
    avg_temp = round(sum(r.temperature for r in rows) / len(rows))
    max_precip = max(r.precipitation_probability or 0 for r in rows)
    avg_wind = round(sum(r.wind_speed or 0 for r in rows) / len(rows))
    first = rows[0]
    return {
        "summary": f"{weather_emoji(first.weather_type)} {first.weather_type}, {avg_temp}°C",
        "recommendation": recommendation(avg_temp, max_precip, avg_wind),
        "details": [summarize(r) for r in rows],
    }
