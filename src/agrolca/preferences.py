"""Archivio chiave-valore per l'agricoltore selezionato e la modalità di vista."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SELECTED_FARMER_KEY = "selected_farmer"
VIEW_MODE_KEY = "view_mode"
VIEW_MODES = ("farmer", "cluster")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """Archivio volatile, utile nei test e come valore predefinito."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileStore:
    """Archivio persistente su un singolo file JSON."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("File delle preferenze non valido: %s", self.path)
            return {}
        return {str(key): str(value) for key, value in data.items()} if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def selected_farmer(store: KeyValueStore) -> str:
    return store.get(SELECTED_FARMER_KEY) or ""


def save_selection(store: KeyValueStore, farmer: str, view_mode: str | None = None) -> None:
    """Memorizza l'agricoltore e, se indicata, la modalità di vista."""

    if view_mode is not None and view_mode not in VIEW_MODES:
        raise ValueError(f"Modalità di vista non valida: {view_mode!r}")
    store.set(SELECTED_FARMER_KEY, farmer)
    if view_mode is not None:
        store.set(VIEW_MODE_KEY, view_mode)


def view_mode(store: KeyValueStore) -> str:
    saved = store.get(VIEW_MODE_KEY)
    return saved if saved in VIEW_MODES else VIEW_MODES[0]
