"""
Tests for AgentSettings.
"""
import pytest
from pydantic import ValidationError

from esrlink.config import AgentSettings


def test_defaults():
    settings = AgentSettings()
    assert settings.chain_url == "https://eos.greymass.com"
    assert settings.channel_service == "https://cb.anchor.link"
    assert settings.scheme == "esr"
    assert settings.link_name == "mydapp"
    assert settings.debounce_seconds == 1.0
    assert settings.expire_seconds == 60
    assert settings.session_key == "walletSession"
    assert settings.session_path is None
    assert not settings.rearm_after_sign
    assert not settings.close_replaced_listener


def test_from_env():
    settings = AgentSettings.from_env({
        "ESRLINK_CHAIN_URL": "https://node.example.com/",
        "ESRLINK_DEBOUNCE_SECONDS": "0.5",
        "ESRLINK_REARM_AFTER_SIGN": "true",
        "ESRLINK_LINK_NAME": "",
        "UNRELATED": "x",
    })
    assert settings.chain_url == "https://node.example.com"
    assert settings.debounce_seconds == 0.5
    assert settings.rearm_after_sign is True
    assert settings.link_name == "mydapp"


def test_from_env_overrides_win():
    settings = AgentSettings.from_env({"ESRLINK_RETRY_COUNT": "5"}, retry_count=1)
    assert settings.retry_count == 1


def test_from_env_reads_os_environ(monkeypatch):
    monkeypatch.setenv("ESRLINK_SCHEME", "web+esr")
    assert AgentSettings.from_env().scheme == "web+esr"


def test_remote_http_chain_rejected():
    with pytest.raises(ValidationError, match="https"):
        AgentSettings(chain_url="http://node.example.com")


def test_local_http_chain_accepted():
    assert AgentSettings(chain_url="http://localhost:8888").chain_url == "http://localhost:8888"


def test_insecure_override(monkeypatch):
    monkeypatch.setenv("ESRLINK_INSECURE_RPC", "1")
    assert AgentSettings(chain_url="http://node.example.com").chain_url == "http://node.example.com"


@pytest.mark.parametrize("field,value", [
    ("debounce_seconds", -1),
    ("expire_seconds", 0),
    ("retry_count", -1),
    ("channel_service", "ftp://cb.example.com"),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        AgentSettings(**{field: value})
