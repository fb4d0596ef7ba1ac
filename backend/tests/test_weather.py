"""Forecast parsing, the cached weather endpoints and the weather cron job."""
from datetime import datetime

import pytest
from sqlmodel import select

from ladder.models.match import Match
from ladder.models.weather import HourlyWeather
from ladder.services import weather_service
from ladder.services.weather_service import (
    WeatherFetchError,
    parse_hourly_forecast,
    refresh_forecast,
    weather_description,
    weather_emoji,
    wind_direction_arrow,
)

NOW = datetime(2025, 6, 1, 12, 0)
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def _entry(time, temperature=18.4, **fields):
    entry = {
        "time": time,
        "screenTemperature": temperature,
        "feelsLikeTemperature": 17.0,
        "significantWeatherCode": 7,
        "probOfPrecipitation": 10,
        "windSpeed10m": 4.2,
        "windDirectionFrom10m": 180,
        "uvIndex": 3,
        "screenRelativeHumidity": 60,
    }
    entry.update(fields)
    return entry


PAYLOAD = {
    "features": [
        {
            "properties": {
                "timeSeries": [
                    _entry("2025-06-01T11:00Z"),
                    _entry("2025-06-01T13:00Z"),
                    _entry("2025-06-01T14:00Z", temperature=None),
                    _entry("2025-06-01T15:00Z", significantWeatherCode=12, probOfPrecipitation=80),
                    _entry("2025-06-01T23:00Z"),
                    _entry("2025-06-02T05:00Z"),
                    _entry("not a time"),
                ]
            }
        }
    ]
}


class TestParsing:
    def test_keeps_future_grid_hours_with_a_temperature(self):
        rows = parse_hourly_forecast(PAYLOAD, NOW)
        assert [r["forecast_at"] for r in rows] == [datetime(2025, 6, 1, 13), datetime(2025, 6, 1, 15)]
        assert rows[0]["weather_type"] == "Cloudy"
        assert rows[1]["precipitation_probability"] == 80

    def test_empty_payload(self):
        assert parse_hourly_forecast({}, NOW) == []
        assert parse_hourly_forecast({"features": []}, NOW) == []

    @pytest.mark.parametrize(
        "code,expected",
        [(None, "Sunny day"), (1, "Sunny day"), ("14", "Heavy rain"), (99, "Variable conditions")],
    )
    def test_weather_description(self, code, expected):
        assert weather_description(code) == expected

    def test_emoji_and_wind_arrow(self):
        assert weather_emoji("Partly cloudy") == "⛅"
        assert weather_emoji("Heavy rain and thunder") == "⛈️"
        assert weather_emoji("Light rain") == "🌦️"
        assert wind_direction_arrow(0) == "⬆️"
        assert wind_direction_arrow(350) == "⬆️"
        assert wind_direction_arrow(90) == "➡️"
        assert wind_direction_arrow(None) == "💨"


def test_refresh_is_idempotent_and_drops_stale_hours(session):
    session.add(HourlyWeather(forecast_at=datetime(2025, 5, 28, 12), temperature=10, weather_type="Cloudy"))
    session.commit()

    first = refresh_forecast(session, NOW, fetch=lambda: PAYLOAD)
    second = refresh_forecast(session, NOW, fetch=lambda: PAYLOAD)

    assert first == {"updated": 2, "removed": 1}
    assert second == {"updated": 2, "removed": 0}
    assert len(session.exec(select(HourlyWeather)).all()) == 2


def test_refresh_propagates_fetch_errors(session):
    def failing():
        raise WeatherFetchError("Met Office returned 503")

    with pytest.raises(WeatherFetchError):
        refresh_forecast(session, NOW, fetch=failing)


def test_hourly_endpoint(client, session):
    refresh_forecast(session, NOW, fetch=lambda: PAYLOAD)

    response = client.get(
        "/api/weather/hourly", params={"start": "2025-06-01T12:00:00Z", "end": "2025-06-01T14:00:00Z"}
    )

    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["datetime"] == "2025-06-01T13:00:00Z"
    assert data[0]["display"] == "18°"
    assert data[0]["wind"] == "⬇️4"


def test_hourly_endpoint_needs_a_range(client):
    assert client.get("/api/weather/hourly").status_code == 400


def test_match_forecast(client, session):
    refresh_forecast(session, NOW, fetch=lambda: PAYLOAD)
    match = Match(start_at=datetime(2025, 6, 1, 14), team1_id="a", team2_id="b")
    session.add(match)
    session.commit()

    forecast = client.get(f"/api/weather/match/{match.id}").json()["forecast"]

    assert forecast["recommendation"].startswith("⚠️ High chance of rain")
    assert [d["datetime"] for d in forecast["details"]] == ["2025-06-01T15:00:00Z"]


class TestWeatherCron:
    @pytest.fixture(autouse=True)
    def cron_secret(self, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "test-cron-secret")

    def test_refreshes_cache(self, client, session, monkeypatch):
        monkeypatch.setattr(
            weather_service,
            "refresh_forecast",
            lambda s, now: refresh_forecast(s, now, fetch=lambda: PAYLOAD),
        )

        response = client.post("/api/cron/weather", headers=CRON_HEADERS)

        assert response.json() == {"success": True, "updated": 2, "removed": 0}

    def test_fetch_failure_is_bad_gateway(self, client, monkeypatch):
        monkeypatch.delenv("MET_OFFICE_API_KEY", raising=False)
        response = client.post("/api/cron/weather", headers=CRON_HEADERS)
        assert response.status_code == 502
        assert response.json() == {"error": "Failed to fetch weather forecast"}

    def test_requires_cron_secret(self, client):
        assert client.post("/api/cron/weather").status_code == 401
