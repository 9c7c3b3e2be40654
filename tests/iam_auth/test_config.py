"""Tests for configuration loading."""

import pytest

from iam_auth.config import IamCredentials, TokenManagerConfig
from iam_auth.errors import InvalidConfigurationError


class TestTokenManagerConfig:
    """Test TokenManagerConfig dataclass and loading."""

    def test_defaults(self):
        config = TokenManagerConfig()

        assert config.expiry_threshold == 0.85
        assert config.request_timeout_seconds == 30.0

    def test_from_env_defaults(self):
        config = TokenManagerConfig.from_env()
        assert config.expiry_threshold == 0.85

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("IAM_TOKEN_EXPIRY_THRESHOLD", "0.7")
        monkeypatch.setenv("IAM_TOKEN_REQUEST_TIMEOUT", "12.5")

        config = TokenManagerConfig.from_env()

        assert config.expiry_threshold == 0.7
        assert config.request_timeout_seconds == 12.5

    @pytest.mark.parametrize("value", ["0", "1", "0.1", "1.5", "abc"])
    def test_from_env_invalid_threshold(self, monkeypatch, value):
        monkeypatch.setenv("IAM_TOKEN_EXPIRY_THRESHOLD", value)

        with pytest.raises(InvalidConfigurationError):
            TokenManagerConfig.from_env()

    @pytest.mark.parametrize("value", ["0", "-5", "soon"])
    def test_invalid_timeout(self, monkeypatch, value):
        monkeypatch.setenv("IAM_TOKEN_REQUEST_TIMEOUT", value)

        with pytest.raises(InvalidConfigurationError, match="timeout"):
            TokenManagerConfig.from_env()

    def test_load_config_from_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "iam:\n"
            "  expiry_threshold: 0.9\n"
            "  request_timeout_seconds: 10\n"
        )

        config = TokenManagerConfig.load_config(config_file)

        assert config.expiry_threshold == 0.9
        assert config.request_timeout_seconds == 10.0

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("iam:\n  expiry_threshold: 0.9\n")
        monkeypatch.setenv("IAM_TOKEN_EXPIRY_THRESHOLD", "0.6")

        config = TokenManagerConfig.load_config(config_file)

        assert config.expiry_threshold == 0.6

    def test_missing_file_uses_defaults(self, tmp_path):
        config = TokenManagerConfig.load_config(tmp_path / "missing.yaml")
        assert config.expiry_threshold == 0.85

    def test_yaml_without_iam_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("other:\n  value: 1\n")

        config = TokenManagerConfig.load_config(config_file)

        assert config.expiry_threshold == 0.85

    def test_yaml_invalid_threshold(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("iam:\n  expiry_threshold: 1.0\n")

        with pytest.raises(InvalidConfigurationError):
            TokenManagerConfig.load_config(config_file)

    def test_yaml_iam_section_not_mapping(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("iam: 0.9\n")

        with pytest.raises(InvalidConfigurationError, match="mapping"):
            TokenManagerConfig.load_config(config_file)

    @pytest.mark.parametrize("content", ["- 0.9\n- 10\n", "just a string\n", "42\n"])
    def test_yaml_top_level_not_mapping(self, tmp_path, content):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(content)

        with pytest.raises(InvalidConfigurationError, match="top level"):
            TokenManagerConfig.load_config(config_file)


class TestIamCredentials:
    """Test IamCredentials loading."""

    def test_from_env_api_key(self, monkeypatch):
        monkeypatch.setenv("GP_IAM_ENDPOINT", "https://iam.example.com")
        monkeypatch.setenv("GP_IAM_API_KEY", "test-api-key-0123456789")

        credentials = IamCredentials.from_env()

        assert credentials.has_api_key
        assert not credentials.has_bearer_token
        assert credentials.identity.token_url == "https://iam.example.com/identity/token"

    def test_from_env_bearer_token(self, monkeypatch):
        monkeypatch.setenv("GP_IAM_BEARER_TOKEN", "bearer-abc")

        credentials = IamCredentials.from_env()

        assert credentials.has_bearer_token
        assert not credentials.has_api_key

    def test_from_env_api_key_without_endpoint_rejected(self, monkeypatch):
        monkeypatch.setenv("GP_IAM_API_KEY", "test-api-key-0123456789")

        with pytest.raises(InvalidConfigurationError, match="GP_IAM_ENDPOINT"):
            IamCredentials.from_env()

    def test_from_env_empty(self):
        with pytest.raises(InvalidConfigurationError):
            IamCredentials.from_env()

    def test_identity_requires_api_key(self):
        with pytest.raises(InvalidConfigurationError):
            IamCredentials(bearer_token="bearer-abc").identity

    def test_from_json(self):
        credentials = IamCredentials.from_json(
            '{"apikey": "test-api-key-0123456789", "iam_endpoint": "https://iam.example.com"}'
        )

        assert credentials.endpoint == "https://iam.example.com"
        assert credentials.api_key == "test-api-key-0123456789"

    def test_from_json_single_quotes_rejected(self):
        with pytest.raises(InvalidConfigurationError, match="not valid JSON"):
            IamCredentials.from_json("{'apikey': 'k', 'iam_endpoint': 'e'}")

    def test_repr_masks_secrets(self):
        credentials = IamCredentials(
            endpoint="https://iam.example.com",
            api_key="test-api-key-0123456789",
            bearer_token="bearer-token-0123456789",
        )

        text = repr(credentials)

        assert "test-api-key-0123456789" not in text
        assert "bearer-token-0123456789" not in text
        assert "https://iam.example.com" in text
