"""Phone normalisation and the Twilio wrapper in dry-run mode."""

from types import SimpleNamespace

import pytest

from ladder.services.twilio_service import (
    TwilioService,
    format_e164,
    member_phone_numbers,
    validate_e164,
)


# ---------------------------------------------------------------------------
# Phone number formatting tests
# ---------------------------------------------------------------------------


class TestFormatE164:
    """Test phone number formatting to E.164."""

    def test_already_e164(self):
        assert format_e164("+447911123456") == "+447911123456"

    def test_spaced_e164(self):
        assert format_e164("+44 7911 123456") == "+447911123456"

    def test_missing_plus(self):
        assert format_e164("447911123456") == "+447911123456"

    def test_uk_national(self):
        assert format_e164("07911 123456") == "+447911123456"

    def test_mobile_without_trunk_zero(self):
        assert format_e164("7911123456") == "+447911123456"

    def test_international_prefix(self):
        assert format_e164("0044 7911 123456") == "+447911123456"

    def test_other_country_with_plus(self):
        assert format_e164("+1 (555) 123-4567") == "+15551234567"

    def test_invalid_short(self):
        with pytest.raises(ValueError, match="Cannot parse"):
            format_e164("12345")

    def test_invalid_empty(self):
        with pytest.raises(ValueError, match="empty"):
            format_e164("   ")


class TestValidateE164:
    def test_valid_uk(self):
        assert validate_e164("+447911123456") is True

    def test_missing_plus(self):
        assert validate_e164("447911123456") is False

    def test_not_a_number(self):
        assert validate_e164("+abcdefghij") is False


class TestMemberPhoneNumbers:
    def _user(self, phone, uid="u"):
        return SimpleNamespace(id=uid, phone=phone)

    def test_formats_and_dedupes(self):
        users = [self._user("07911 123456", "a"), self._user("+447911123456", "b"), self._user("7700900123", "c")]
        assert member_phone_numbers(users) == ["+447911123456", "+447700900123"]

    def test_skips_blank_placeholder_and_invalid(self):
        users = [self._user(None), self._user("  "), self._user("N/A"), self._user("12345")]
        assert member_phone_numbers(users) == []


# ---------------------------------------------------------------------------
# TwilioService (no credentials -> dry run)
# ---------------------------------------------------------------------------


@pytest.fixture
def dry_run_service(monkeypatch):
    for var in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
        monkeypatch.delenv(var, raising=False)
    return TwilioService()


def test_dry_run_without_credentials(dry_run_service):
    assert dry_run_service.dry_run is True
    assert dry_run_service.is_configured is False
    result = dry_run_service.send_sms("+447911123456", "Match at 18:00")
    assert result["status"] == "dry_run"
    assert result["sid"].startswith("DRY_RUN_")


def test_invalid_number_fails_without_sending(dry_run_service):
    result = dry_run_service.send_sms("07911", "hello")
    assert result["status"] == "failed"
    assert "Invalid phone number" in result["error"]
