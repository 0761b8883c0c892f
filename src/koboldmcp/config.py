from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_API_URL = "http://localhost:5001"

# Override via KOBOLD_API_URL env var or config file; per-call apiUrl still wins.
_DEFAULT_BASE_URL = os.environ.get("KOBOLD_API_URL", DEFAULT_API_URL)

CONFIG_PATH = Path.home() / ".config" / "koboldmcp" / "config.yml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class AppConfig:
    api_url: str = _DEFAULT_BASE_URL
    # None = no timeout; generation requests routinely run for minutes.
    timeout: float | None = None
    log_level: str = "WARNING"
    config_version: int = 1


def _validate(cfg: dict[str, Any]) -> dict[str, Any]:
    defaults = AppConfig().__dict__.copy()
    merged = {**defaults, **cfg}
    if not isinstance(merged.get("api_url"), str) or not merged["api_url"].strip():
        merged["api_url"] = defaults["api_url"]
    merged["api_url"] = merged["api_url"].strip().rstrip("/")
    raw_timeout = merged.get("timeout")
    if isinstance(raw_timeout, (int, float)) and not isinstance(raw_timeout, bool) and raw_timeout > 0:
        merged["timeout"] = float(raw_timeout)
    else:
        merged["timeout"] = defaults["timeout"]
    raw_level = str(merged.get("log_level") or "").upper()
    merged["log_level"] = raw_level if raw_level in _LOG_LEVELS else defaults["log_level"]
    merged["config_version"] = defaults["config_version"]
    return {key: merged[key] for key in defaults}


def load_config(path: Path = CONFIG_PATH) -> dict[str, Any]:
    if not path.exists():
        return _validate({})

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    cfg = _validate(raw if isinstance(raw, dict) else {})
    if cfg != raw:
        save_config(cfg, path)
    return cfg


def save_config(cfg: dict[str, Any], path: Path = CONFIG_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    validated = _validate(cfg)
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(yaml.safe_dump(validated, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)


def configure_logging(level: str = "WARNING") -> None:
    # stdout carries JSON-RPC frames, so log records go to stderr only.
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
