from __future__ import annotations

from config import settings


def test_parse_id_list() -> None:
    assert settings._parse_id_list("123, 456,,789 ") == frozenset({"123", "456", "789"})
    assert settings._parse_id_list("") == frozenset()
    assert settings._parse_id_list(None) == frozenset()


def test_parse_int_list_falls_back_on_bad_input() -> None:
    assert settings._parse_int_list("7, 3,1", [1]) == [7, 3, 1]
    assert settings._parse_int_list(None, [7, 3, 1]) == [7, 3, 1]
    assert settings._parse_int_list("seven", [7]) == [7]
    assert settings._parse_int_list("-1,2", [7]) == [7]


def test_parse_bool(monkeypatch) -> None:
    monkeypatch.setenv("REMINDER_TEST_FLAG", "Yes")
    assert settings._parse_bool("REMINDER_TEST_FLAG") is True
    monkeypatch.setenv("REMINDER_TEST_FLAG", "off")
    assert settings._parse_bool("REMINDER_TEST_FLAG", True) is False
    monkeypatch.delenv("REMINDER_TEST_FLAG")
    assert settings._parse_bool("REMINDER_TEST_FLAG", True) is True


def test_allow_list_denies_unknown_users(monkeypatch) -> None:
    monkeypatch.setattr(settings, "ALLOWED_USER_IDS", frozenset({"42"}))
    assert settings.is_allowed_user("42")
    assert settings.is_allowed_user(42)
    assert not settings.is_allowed_user("43")

    monkeypatch.setattr(settings, "ALLOWED_USER_IDS", frozenset())
    assert not settings.is_allowed_user("42")


def test_validate_settings_rejects_bad_daily_time(monkeypatch) -> None:
    monkeypatch.setattr(settings, "ENABLE_TELEGRAM_BOT_POLLING", False)
    monkeypatch.setattr(settings, "USER_TIMEZONE", None)
    monkeypatch.setattr(settings, "DAILY_REMINDER_TIME", "25:00")
    assert settings.validate_settings() is False

    monkeypatch.setattr(settings, "DAILY_REMINDER_TIME", "07:30")
    assert settings.validate_settings() is True
