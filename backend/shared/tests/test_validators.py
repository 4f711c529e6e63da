import pytest
from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_string_list


class TestParseStringList:
    def test_json_array_string(self):
        assert parse_string_list('["http://a.com","http://b.com"]') == ["http://a.com", "http://b.com"]

    def test_comma_separated_string(self):
        assert parse_string_list("http://a.com , http://b.com") == ["http://a.com", "http://b.com"]

    def test_comma_separated_skips_empty_segments(self):
        assert parse_string_list("http://a.com,,http://b.com,") == ["http://a.com", "http://b.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com"]
        assert parse_string_list(origins) == origins

    def test_blank_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("   ")

    def test_blank_string_raises_even_when_empty_allowed(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("", allow_empty=True)

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_empty_results_raise_by_default(self):
        for value in ("[]", ",", []):
            with pytest.raises(ValueError, match="must not be empty"):
                parse_string_list(value)

    def test_empty_results_allowed_on_request(self):
        assert parse_string_list("[]", allow_empty=True) == []
        assert parse_string_list(",,", allow_empty=True) == []
        assert parse_string_list([], allow_empty=True) == []


class _OriginSettings(BaseSettings):
    model_config = {"env_prefix": "VALIDATORS_TEST_"}

    cors_origins: list[str] = []

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_origins(cls, v):
        return parse_string_list(v, allow_empty=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (init_settings, StringListEnvSettingsSource(settings_cls))


class TestStringListEnvSettingsSource:
    def test_csv_value_reaches_validator(self, monkeypatch):
        monkeypatch.setenv("VALIDATORS_TEST_CORS_ORIGINS", "http://a.com,http://b.com")
        assert _OriginSettings().cors_origins == ["http://a.com", "http://b.com"]

    def test_json_value_reaches_validator(self, monkeypatch):
        monkeypatch.setenv("VALIDATORS_TEST_CORS_ORIGINS", '["http://a.com"]')
        assert _OriginSettings().cors_origins == ["http://a.com"]

    def test_type_checking_only_annotations_are_not_evaluated(self):
        annotations = StringListEnvSettingsSource.prepare_field_value.__annotations__
        assert annotations["field"] == "FieldInfo"
