from __future__ import annotations

from pathlib import Path

import pytest

from whatsapp_agent.config import load_config, redact


def test_missing_file_uses_defaults(clean_env, tmp_path: Path):
    cfg = load_config(str(tmp_path / "nope.yaml"))
    assert cfg["memory"]["max_messages"] == 20
    assert cfg["llm"]["model"] == "gpt-5-mini"


def test_file_values_merge_over_defaults(clean_env, tmp_path: Path):
    path = tmp_path / "c.yaml"
    path.write_text("llm:\n  model: gpt-test\n", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg["llm"]["model"] == "gpt-test"
    assert cfg["llm"]["temperature"] == 1.0


def test_env_overrides_and_secrets(clean_env, monkeypatch, tmp_path: Path):
    monkeypatch.setenv("WHATSAPP_AGENT__MEMORY__MAX_MESSAGES", "10")
    monkeypatch.setenv("WHATSAPP_AGENT__LLM__TIMEOUT", "30.5")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("SENDER_PHONE", "PHONE_ID")
    monkeypatch.setenv("FACEBOOK_AUTH_TOKEN", "fb-token")
    monkeypatch.setenv("WEBHOOK_VERIFY_TOKEN", "verify")

    cfg = load_config(str(tmp_path / "nope.yaml"))
    assert cfg["memory"]["max_messages"] == 10
    assert cfg["llm"]["timeout"] == 30.5
    assert cfg["llm"]["api_key"] == "sk-test"
    assert cfg["whatsapp"]["sender_phone"] == "PHONE_ID"
    assert cfg["whatsapp"]["auth_token"] == "fb-token"
    assert cfg["webhook"]["verify_token"] == "verify"


def test_config_path_from_environment(clean_env, monkeypatch, tmp_path: Path):
    path = tmp_path / "c.yaml"
    path.write_text("agent:\n  system_prompt: Be terse.\n", encoding="utf-8")
    monkeypatch.setenv("WHATSAPP_AGENT_CONFIG", str(path))
    assert load_config()["agent"]["system_prompt"] == "Be terse."


def test_invalid_yaml_raises(clean_env, tmp_path: Path):
    path = tmp_path / "c.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_config(str(path))


def test_redact_masks_secrets():
    cfg = {"llm": {"api_key": "sk", "model": "m"}, "webhook": {"verify_token": ""}}
    assert redact(cfg) == {"llm": {"api_key": "***", "model": "m"}, "webhook": {"verify_token": ""}}
