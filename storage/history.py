"""Persistence for connection history and simulation plans.

The engine never touches storage. These helpers sit between the front ends
(cli.py, main.py) and a key-value store with get/set/remove semantics, and
translate stored JSON to and from the typed schemas.

JsonFileStore is the default store: one JSON object in one file. A file that
fails to parse reads as empty rather than raising.
"""

import json
import logging
import os
import pathlib
from typing import Any, Protocol

from pydantic import ValidationError

from schemas.report import PrometheusConfig
from schemas.simulation import SimulationAction

logger = logging.getLogger(__name__)

CONNECTIONS_KEY = "prometheus-blacklight-connections"
SIMULATIONS_KEY = "prometheus-blacklight-simulations"
MAX_SAVED_CONNECTIONS = 10

DEFAULT_STATE_FILE = pathlib.Path.home() / ".prometheus-blacklight.json"


class KeyValueStore(Protocol):
    """Minimal storage contract: string keys, JSON-serializable values."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class JsonFileStore:
    """KeyValueStore backed by a single JSON file.

    The file is read on every get and rewritten on every set/remove.
    """

    def __init__(self, path: pathlib.Path | str) -> None:
        self.path = pathlib.Path(path)

    @classmethod
    def from_env(cls) -> "JsonFileStore":
        return cls(os.environ.get("BLACKLIGHT_STATE_FILE") or DEFAULT_STATE_FILE)

    def get(self, key: str) -> Any | None:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("State file %s unreadable, starting empty: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


class ConnectionHistory:
    """Recently used servers, newest first, unique by base URL."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def saved(self) -> list[PrometheusConfig]:
        raw = self._store.get(CONNECTIONS_KEY)
        if not isinstance(raw, list):
            return []
        try:
            return [PrometheusConfig.model_validate(item) for item in raw]
        except ValidationError as exc:
            logger.warning("Saved connections are malformed, ignoring them: %s", exc)
            return []

    def save(self, config: PrometheusConfig) -> None:
        """Move config to the front, replacing any entry with the same URL."""
        kept = [c for c in self.saved() if c.base_url != config.base_url]
        kept.insert(0, config)
        self._store.set(
            CONNECTIONS_KEY,
            [c.model_dump() for c in kept[:MAX_SAVED_CONNECTIONS]],
        )

    def remove(self, base_url: str) -> None:
        kept = [c for c in self.saved() if c.base_url != base_url]
        self._store.set(CONNECTIONS_KEY, [c.model_dump() for c in kept])


class SimulationPlanStore:
    """The user's saved list of what-if actions."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def load(self) -> list[SimulationAction]:
        raw = self._store.get(SIMULATIONS_KEY)
        if not isinstance(raw, list):
            return []
        try:
            actions = [SimulationAction.model_validate(item) for item in raw]
        except ValidationError as exc:
            logger.warning("Saved simulation plan is malformed, ignoring it: %s", exc)
            return []
        return sorted(actions, key=lambda a: a.insertion_order)

    def save(self, actions: list[SimulationAction]) -> None:
        self._store.set(SIMULATIONS_KEY, [a.model_dump(mode="json") for a in actions])

    def clear(self) -> None:
        self._store.remove(SIMULATIONS_KEY)
