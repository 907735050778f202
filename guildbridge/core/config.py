from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

APP_NAME = "GuildBridge"
# Paths are module-level so tests can monkeypatch them easily.
DATA_DIR = Path(os.path.expanduser("~")) / ".guildbridge_local"
CONFIG_PATH = DATA_DIR / "config.json"

DEFAULT_CFG: dict[str, Any] = {
    "ui": {"theme": "dark_teal.xml"},
    "connection": {
        # 5s respects the remote reconnect rate limit
        "retry_limit": 3,
        "retry_delay": 5.0,
        "retry_backoff": "fixed",  # or "exponential"
    },
    "history": {"limit": 50},
    "commands": {"legacy_untyped_send": False},
    "logging": {"enabled": True, "dir": str(DATA_DIR / "logs")},
}


def _default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_CFG)


def ensure_config() -> dict[str, Any]:
    """Ensure the user config exists and return it as a dict.

    A corrupted file is replaced with defaults.
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not CONFIG_PATH.exists():
        cfg = _default_config()
        _persist_cfg(cfg)
        return cfg
    try:
        with CONFIG_PATH.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError("config root must be an object")
        return cfg
    except Exception:
        cfg = _default_config()
        _persist_cfg(cfg)
        return cfg


def _persist_cfg(cfg: dict[str, Any]) -> None:
    """Write the config dict to CONFIG_PATH (pretty JSON)."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with CONFIG_PATH.open("w", encoding="utf-8") as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)


@dataclass
class BridgeSettings:
    retry_limit: int = 3
    retry_delay: float = 5.0
    retry_backoff: str = "fixed"
    history_limit: int = 50
    legacy_untyped_send: bool = False
    log_enabled: bool = True
    log_dir: str | None = None
    theme: str = "dark_teal.xml"

    @classmethod
    def from_config(cls, cfg: dict[str, Any] | None) -> BridgeSettings:
        cfg = cfg or {}
        conn = cfg.get("connection") or {}
        hist = cfg.get("history") or {}
        cmds = cfg.get("commands") or {}
        logs = cfg.get("logging") or {}
        ui = cfg.get("ui") or {}
        backoff = str(conn.get("retry_backoff", "fixed")).lower()
        if backoff not in ("fixed", "exponential"):
            backoff = "fixed"
        return cls(
            retry_limit=max(0, int(conn.get("retry_limit", 3))),
            retry_delay=max(0.0, float(conn.get("retry_delay", 5.0))),
            retry_backoff=backoff,
            history_limit=max(1, int(hist.get("limit", 50))),
            legacy_untyped_send=bool(cmds.get("legacy_untyped_send", False)),
            log_enabled=bool(logs.get("enabled", True)),
            log_dir=logs.get("dir") or None,
            theme=str(ui.get("theme") or "dark_teal.xml"),
        )

    def retry_delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if self.retry_backoff == "exponential" and attempt > 1:
            return self.retry_delay * (2 ** (attempt - 1))
        return self.retry_delay
