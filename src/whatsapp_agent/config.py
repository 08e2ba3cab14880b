"""Configuration loading utilities for the WhatsApp agent.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable WHATSAPP_AGENT_CONFIG
3. Fallback to "config/default.yaml"

Overrides are applied on top of the file, in order:
- variables with prefix ``WHATSAPP_AGENT__``
  (e.g., WHATSAPP_AGENT__MEMORY__DATA_DIR=/tmp/history)
- the provider secrets under their conventional names
  (OPENAI_API_KEY, SENDER_PHONE, FACEBOOK_AUTH_TOKEN, WEBHOOK_VERIFY_TOKEN)
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "WHATSAPP_AGENT__"

DEFAULTS: Dict[str, Any] = {
    "llm": {"model": "gpt-5-mini", "temperature": 1.0},
    "whatsapp": {"api_version": "v22.0", "base_url": "https://graph.facebook.com"},
    "webhook": {"verify_token": ""},
    "memory": {"backend": "disk", "data_dir": "data/conversations", "max_messages": 20},
    "agent": {},
    "server": {"log_level": "info"},
}

# env var -> (section, key)
SECRET_ENV = {
    "OPENAI_API_KEY": ("llm", "api_key"),
    "SENDER_PHONE": ("whatsapp", "sender_phone"),
    "FACEBOOK_AUTH_TOKEN": ("whatsapp", "auth_token"),
    "WEBHOOK_VERIFY_TOKEN": ("webhook", "verify_token"),
}

_SECRET_KEYS = {"api_key", "auth_token", "verify_token"}


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix WHATSAPP_AGENT__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., WHATSAPP_AGENT__LLM__MODEL -> cfg["llm"]["model"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def _apply_secret_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in SECRET_ENV.items():
        value = os.environ.get(env_name)
        if value:
            cfg.setdefault(section, {})[key] = value
    return cfg


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load YAML configuration for the agent.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``WHATSAPP_AGENT_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Defaults merged with the file, with environment overrides applied.
    """
    if path is None:
        path = os.environ.get("WHATSAPP_AGENT_CONFIG", "config/default.yaml")

    path_obj = Path(path)
    file_cfg: Dict[str, Any] = {}
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
    else:
        with path_obj.open("r", encoding="utf-8") as f:
            try:
                file_cfg = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e
        if not isinstance(file_cfg, dict):
            raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    cfg = _merge(DEFAULTS, file_cfg)
    cfg = _apply_env_overrides(cfg)
    return _apply_secret_env(cfg)


def redact(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``cfg`` with secret values masked, safe for logs."""
    out: Dict[str, Any] = {}
    for k, v in cfg.items():
        if isinstance(v, dict):
            out[k] = redact(v)
        elif k in _SECRET_KEYS and v:
            out[k] = "***"
        else:
            out[k] = v
    return out
