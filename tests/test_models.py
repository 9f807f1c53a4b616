"""Tests for settings models."""

import pytest
from pydantic import ValidationError

from chatdispatch.models import ClientSettings, MenuSettings, is_safe_id


@pytest.mark.parametrize(
    "value,expected",
    [
        ("42", True),
        ("9223372036854775807", True),
        ("9223372036854775808", False),
        ("-1", False),
        ("abc", False),
        ("", False),
    ],
)
def test_is_safe_id(value, expected):
    assert is_safe_id(value) is expected


def test_client_settings_defaults():
    settings = ClientSettings(owner_id="42")
    assert settings.prefix is None
    assert settings.help_word == "help"
    assert settings.use_help is True
    assert settings.linked_cache_size == 0
    assert settings.index_limit == 20


def test_blank_prefix_rejected():
    with pytest.raises(ValidationError):
        ClientSettings(owner_id="42", prefix="   ")


def test_help_word_must_be_single_word():
    with pytest.raises(ValidationError):
        ClientSettings(owner_id="42", help_word="get help")


def test_negative_cache_size_rejected():
    with pytest.raises(ValidationError):
        ClientSettings(owner_id="42", linked_cache_size=-1)


def test_menu_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        MenuSettings(timeout_seconds=0)


def test_empty_owner_rejected():
    with pytest.raises(ValidationError):
        ClientSettings(owner_id="")
