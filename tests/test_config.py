import os

import pytest
from pydantic import ValidationError

from prom2grafana import load_env_file
from prom2grafana.config import DEFAULT_API_URL, DEFAULT_MODEL, load_settings
from prom2grafana.errors import ConfigError


def test_defaults():
    s = load_settings({"OPENAI_API_KEY": "k"})
    assert s.api_url == DEFAULT_API_URL
    assert s.port == 8080
    assert s.log_level == "info"
    assert s.models_to_try() == [DEFAULT_MODEL]
    assert s.allow_origins == ("*",)


def test_missing_api_key_is_fatal():
    with pytest.raises(ConfigError):
        load_settings({})
    with pytest.raises(ConfigError):
        load_settings({"OPENAI_API_KEY": "   "})


def test_models_list_takes_precedence_and_keeps_duplicates():
    s = load_settings(
        {
            "OPENAI_API_KEY": "k",
            "OPENAI_MODEL": "single/model",
            "OPENAI_MODELS": " a/one , b/two,, a/one ",
        }
    )
    assert s.models_to_try() == ["a/one", "b/two", "a/one"]


def test_blank_models_list_falls_back_to_single_model():
    s = load_settings({"OPENAI_API_KEY": "k", "OPENAI_MODEL": "single/model", "OPENAI_MODELS": " , "})
    assert s.models_to_try() == ["single/model"]


def test_overrides():
    s = load_settings(
        {
            "OPENAI_API_KEY": "k",
            "OPENAI_API_URL": "http://localhost:4000/v1/",
            "PORT": "9090",
            "LOG_LEVEL": "DEBUG",
            "ALLOW_ORIGINS": "http://a.test, http://b.test",
            "CONVERT_WORKERS": "3",
        }
    )
    assert s.api_url == "http://localhost:4000/v1"
    assert s.port == 9090
    assert s.log_level == "debug"
    assert s.allow_origins == ("http://a.test", "http://b.test")
    assert s.workers == 3


def test_unknown_log_level_defaults_to_info():
    assert load_settings({"OPENAI_API_KEY": "k", "LOG_LEVEL": "chatty"}).log_level == "info"


def test_bad_port_is_config_error():
    with pytest.raises(ConfigError):
        load_settings({"OPENAI_API_KEY": "k", "PORT": "eighty"})


def test_settings_are_frozen():
    s = load_settings({"OPENAI_API_KEY": "k"})
    with pytest.raises(ValidationError):
        s.port = 1


def test_env_file_seeds_environment_without_overriding(tmp_path, monkeypatch):
    env = tmp_path / ".env"
    env.write_text(
        "# local overrides\n"
        "\n"
        "export P2G_TEST_KEY=sk-local\n"
        "P2G_TEST_URL = 'https://llm.example/v1'\n"
        'P2G_TEST_MODELS="a, b"\n'
        "P2G_TEST_SET=from-file\n"
        "not a pair\n",
        encoding="utf-8",
    )
    for name in ("P2G_TEST_KEY", "P2G_TEST_URL", "P2G_TEST_MODELS"):
        # registers the variable so monkeypatch removes it again afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("P2G_TEST_SET", "from-shell")

    load_env_file(env)

    assert os.environ["P2G_TEST_KEY"] == "sk-local"
    assert os.environ["P2G_TEST_URL"] == "https://llm.example/v1"
    assert os.environ["P2G_TEST_MODELS"] == "a, b"
    assert os.environ["P2G_TEST_SET"] == "from-shell"


def test_missing_env_file_is_ignored(tmp_path):
    load_env_file(tmp_path / "absent.env")
