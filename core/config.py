from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

LOG = logging.getLogger(__name__)

ENV_PREFIX = "PHOENIX_"

# setting name -> environment variable suffix
ENV_KEYS = {
    "backend_url": "BACKEND_URL",
    "node_colors": "NODE_COLORS",
    "cors_allowed_origins": "CORS_ALLOWED_ORIGINS",
    "request_timeout": "REQUEST_TIMEOUT",
    "tick_interval_ms": "TICK_INTERVAL_MS",
    "steps_per_tick": "STEPS_PER_TICK",
    "log_dir": "LOG_DIR",
    "log_level": "LOG_LEVEL",
}


@dataclass
class Settings:
    backend_url: str = ""
    node_colors: str = ""
    cors_allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    request_timeout: float = 30.0
    host: str = "127.0.0.1"
    port: int = 8050
    debug: bool = False
    width: int = 960
    height: int = 720
    tick_interval_ms: int = 100
    steps_per_tick: int = 3
    log_dir: str = "logs"
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(config_path: Path) -> Dict[str, Any]:
    text = config_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Failed to parse config: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"Config root must be a mapping: {config_path}")
    return data


def _split_origins(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value]
    else:
        items = [part.strip() for part in str(value or "").split(",")]
    return [item for item in items if item] or ["*"]


def _coerce(name: str, value: Any, current: Any) -> Any:
    if name == "cors_allowed_origins":
        return _split_origins(value)
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes"}
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if name == "node_colors" and isinstance(value, dict):
        # the color loader expects the JSON string form
        return json.dumps(value)
    return str(value)


def load_settings(config_path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from defaults, an optional YAML file, then environment overrides."""
    env = os.environ if env is None else env
    settings = Settings()
    known = {f.name for f in fields(Settings)}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
        for key, value in load_config(config_path).items():
            if key not in known:
                LOG.warning("config-unknown-key", extra={"key": key, "path": str(config_path)})
                continue
            setattr(settings, key, _coerce(key, value, getattr(settings, key)))

    for name, suffix in ENV_KEYS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        try:
            setattr(settings, name, _coerce(name, raw, getattr(settings, name)))
        except ValueError:
            LOG.warning("config-env-invalid", extra={"variable": ENV_PREFIX + suffix, "value": raw})
    return settings
