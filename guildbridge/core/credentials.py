from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from . import config


class CredentialStore:
    """Single-record token store backed by a small JSON file.

    The record looks like ``{"credential": "<token>"}``; extra keys are preserved on update.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path else config.DATA_DIR / "credentials.json"

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                doc = json.load(f)
        except Exception:
            return None
        return doc if isinstance(doc, dict) else None

    def load(self) -> str | None:
        doc = self._read()
        if not doc:
            return None
        token = doc.get("credential")
        if not isinstance(token, str) or not token.strip():
            return None
        return token

    def save(self, credential: str) -> dict[str, Any]:
        """Upsert the credential and return the stored record."""
        doc = self._read()
        if doc is None:
            doc = {"credential": credential}
        else:
            doc["credential"] = credential
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(doc, f, ensure_ascii=False, indent=2)
        return doc

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
