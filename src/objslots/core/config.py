# src/objslots/core/config.py
from __future__ import annotations

import os
import threading
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from objslots.core.errors import ConfigError

ENV_CONFIG = "OBJSLOTS_CONFIG"
ENV_THREAD_SAFE = "OBJSLOTS_THREAD_SAFE"
ENV_PARALLEL = "OBJSLOTS_PARALLEL"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class DispatchConfig:
    """Dispatch mode of an emitter class.

    Read once when a publisher class is defined; instances of that class
    never change mode afterwards.
    """
    thread_safe: bool = False
    parallel: bool = False
    worker_prefix: str = "slot"
    daemon_workers: bool = True


def _as_bool(key: str, v: Any) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigError(f"{key}: expected a boolean, got {v!r}")


def from_mapping(data: Optional[Dict[str, Any]], base: Optional[DispatchConfig] = None) -> DispatchConfig:
    cfg = base or DispatchConfig()
    if not data:
        return cfg
    known = {f.name: f for f in fields(DispatchConfig)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"unknown dispatch option(s): {', '.join(unknown)}")
    changes: Dict[str, Any] = {}
    for k, v in data.items():
        if known[k].type in ("bool", bool):
            changes[k] = _as_bool(k, v)
        else:
            changes[k] = str(v)
    return replace(cfg, **changes)


def load_config(path: Optional[str] = None) -> DispatchConfig:
    """Build a DispatchConfig from .env, a YAML file and the environment.

    YAML layout::

        dispatch:
          thread_safe: true
          parallel: false

    Environment variables win over the file.
    """
    load_dotenv(find_dotenv(usecwd=True))
    cfg = DispatchConfig()

    yaml_path = path or os.getenv(ENV_CONFIG)
    if yaml_path:
        p = Path(yaml_path)
        if not p.is_file():
            raise ConfigError(f"config file not found: {p}")
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{p}: top level must be a mapping")
        section = data.get("dispatch") or {}
        if not isinstance(section, dict):
            raise ConfigError(f"{p}: 'dispatch' must be a mapping")
        cfg = from_mapping(section, cfg)

    env: Dict[str, Any] = {}
    if os.getenv(ENV_THREAD_SAFE) is not None:
        env["thread_safe"] = os.environ[ENV_THREAD_SAFE]
    if os.getenv(ENV_PARALLEL) is not None:
        env["parallel"] = os.environ[ENV_PARALLEL]
    return from_mapping(env, cfg)


_default: Optional[DispatchConfig] = None
_default_lock = threading.Lock()


def default_config() -> DispatchConfig:
    global _default
    with _default_lock:
        if _default is None:
            _default = load_config()
        return _default


def set_default_config(cfg: Optional[DispatchConfig]) -> None:
    """Replace the cached default; None forces a reload on next use.

    Only classes defined afterwards pick up the new default.
    """
    global _default
    with _default_lock:
        _default = cfg
