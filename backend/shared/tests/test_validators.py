import pytest
from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list, sanitize_display_text


class _ListSettings(BaseSettings):
    model_config = {"env_prefix": "VALIDATORS_TEST_"}

    origins: list[str] = ["http://localhost"]
    ports: list[int] = [80]

    @field_validator("origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return init_settings, StringListEnvSettingsSource(settings_cls)


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_string(self):
        result = parse_string_list("http://a.com,http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com", "http://b.com"]
        result = parse_string_list(origins)
        assert result == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_json_empty_array_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("[]")

    def test_empty_list_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list([])

    def test_comma_separated_skips_empty_segments(self):
        result = parse_string_list("http://a.com,,http://b.com,")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")

    def test_multiple_commas_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",,,,")

    def test_allow_empty_accepts_empty_list(self):
        assert parse_string_list([], allow_empty=True) == []


class TestSanitizeDisplayText:
    def test_strips_angle_brackets(self):
        assert sanitize_display_text("<b>Alice</b>") == "bAlice/b"

    def test_trims_whitespace(self):
        assert sanitize_display_text("  Bob  ") == "Bob"

    def test_trims_after_stripping_markup(self):
        assert sanitize_display_text("< Carol >") == "Carol"

    def test_caps_length_at_100(self):
        assert sanitize_display_text("x" * 150) == "x" * 100

    def test_plain_text_unchanged(self):
        assert sanitize_display_text("Player_One-2") == "Player_One-2"


class TestStringListEnvSettingsSource:
    def test_csv_env_reaches_validator(self, monkeypatch):
        monkeypatch.setenv("VALIDATORS_TEST_ORIGINS", "http://a.com,http://b.com")
        assert _ListSettings().origins == ["http://a.com", "http://b.com"]

    def test_json_env_still_accepted(self, monkeypatch):
        monkeypatch.setenv("VALIDATORS_TEST_ORIGINS", '["http://a.com"]')
        assert _ListSettings().origins == ["http://a.com"]

    def test_other_list_types_keep_json_decoding(self, monkeypatch):
        monkeypatch.setenv("VALIDATORS_TEST_PORTS", "[80, 443]")
        assert _ListSettings().ports == [80, 443]
