"""Config loads from env via python-dotenv; only shape errors fail at load time."""
from pathlib import Path

import pytest

from materials_lens.config import Config
from materials_lens.errors import ConfigurationError

ENV_VARS = (
    "LENS_PROVIDER",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "LENS_MODEL",
    "LENS_PROMPT",
    "LENS_CACHE_PATH",
    "LENS_REQUEST_TIMEOUT",
    "LENS_LOG_RAW_RESPONSE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr("materials_lens.config.load_dotenv", lambda **_: None)
    list(map(lambda name: monkeypatch.delenv(name, raising=False), ENV_VARS))


def test_config_defaults():
    config = Config.from_env()

    assert config.provider == "gemini"
    assert config.api_key is None
    assert config.model_id == "gemini-2.5-flash"
    assert config.base_prompt.startswith("Analyze the image.")
    assert config.cache_path == Path(".material_cache.json")
    assert config.request_timeout == 60.0
    assert config.log_level == "INFO"
    assert config.log_raw_response is False


def test_config_reads_key_for_selected_provider(monkeypatch):
    monkeypatch.setenv("LENS_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test123")
    monkeypatch.setenv("GEMINI_API_KEY", "should-not-be-used")

    config = Config.from_env()

    assert config.provider == "openai"
    assert config.api_key == "sk-test123"
    assert config.model_id == "gpt-4.1"


def test_config_provider_argument_overrides_env(monkeypatch):
    monkeypatch.setenv("LENS_PROVIDER", "gemini")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")

    config = Config.from_env(provider="claude")

    assert config.provider == "claude"
    assert config.api_key == "sk-ant"


def test_config_overrides_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LENS_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("LENS_PROMPT", "Custom prompt")
    monkeypatch.setenv("LENS_CACHE_PATH", str(tmp_path / "cache.json"))
    monkeypatch.setenv("LENS_REQUEST_TIMEOUT", "15")
    monkeypatch.setenv("LENS_LOG_RAW_RESPONSE", "true")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    config = Config.from_env()

    assert config.model_id == "gemini-2.5-pro"
    assert config.base_prompt == "Custom prompt"
    assert config.cache_path == tmp_path / "cache.json"
    assert config.request_timeout == 15.0
    assert config.log_raw_response is True
    assert config.log_level == "DEBUG"


def test_config_blank_key_becomes_none(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    assert Config.from_env().api_key is None


def test_config_unknown_provider_fails(monkeypatch):
    monkeypatch.setenv("LENS_PROVIDER", "watson")
    with pytest.raises(ConfigurationError, match="LENS_PROVIDER"):
        Config.from_env()


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_config_bad_timeout_fails(monkeypatch, value):
    monkeypatch.setenv("LENS_REQUEST_TIMEOUT", value)
    with pytest.raises(ConfigurationError, match="LENS_REQUEST_TIMEOUT"):
        Config.from_env()


def test_config_immutable():
    config = Config.from_env()
    with pytest.raises(Exception):
        config.provider = "openai"
