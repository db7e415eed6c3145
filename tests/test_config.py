"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from deckgate.config import Settings

SECRET = "x" * 32


def test_passcode_echo_is_off_by_default():
    settings = Settings(session_secret=SECRET, environment="development")

    assert settings.otp_echo_in_response is False
    assert settings.otp_echo_enabled is False


def test_passcode_echo_opt_in_outside_production():
    settings = Settings(
        session_secret=SECRET, environment="development", otp_echo_in_response=True
    )

    assert settings.otp_echo_enabled is True


def test_production_rejects_passcode_echo():
    with pytest.raises(ValidationError, match="OTP_ECHO_IN_RESPONSE"):
        Settings(
            session_secret=SECRET,
            environment="production",
            email_backend="smtp",
            otp_echo_in_response=True,
        )


def test_production_rejects_console_email():
    with pytest.raises(ValidationError, match="EMAIL_BACKEND"):
        Settings(session_secret=SECRET, environment="production", email_backend="console")
