from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class HourlyWeather(SQLModel, table=True):
    """Cached hourly forecast, one row per UTC hour."""

    __tablename__ = "hourly_weather"

    id: Optional[int] = Field(default=None, primary_key=True)
    forecast_at: datetime = Field(unique=True, index=True)
    temperature: float
    feels_like_temperature: Optional[float] = Field(default=None)
    weather_type: str
    precipitation_probability: Optional[float] = Field(default=None)
    wind_speed: Optional[float] = Field(default=None)
    wind_direction: Optional[float] = Field(default=None)
    wind_gust: Optional[float] = Field(default=None)
    uv_index: Optional[float] = Field(default=None)
    humidity: Optional[float] = Field(default=None)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
