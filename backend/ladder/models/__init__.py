from ladder.models.availability import Availability
from ladder.models.ladder import Ladder
from ladder.models.match import Match
from ladder.models.sms_log import SmsLog
from ladder.models.user import User
from ladder.models.weather import HourlyWeather

__all__ = [
    "Availability",
    "HourlyWeather",
    "Ladder",
    "Match",
    "SmsLog",
    "User",
]
