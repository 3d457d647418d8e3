"""Durable record of alert occurrences that have already been shown."""

from __future__ import annotations

import json
import logging
from pathlib import Path

LOGGER = logging.getLogger("chime.alerts.ack_store")

RETENTION_MS = 24 * 60 * 60 * 1000


class AcknowledgedAlertStore:
    """Map of alert key -> fire instant (epoch ms), persisted as JSON.

    Consumers only append their own keys; old entries are dropped through
    ``prune_older_than``/``cleanup_stale``. With ``path=None`` the store is kept
    in memory only.
    """

    def __init__(self, path: Path | None = None, *, logger: logging.Logger | None = None) -> None:
        self._path = path
        self._logger = logger or LOGGER
        self._entries: dict[str, int] = {}
        self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def has(self, key: str) -> bool:
        return key in self._entries

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> set[str]:
        """Snapshot of the acknowledged keys."""
        return set(self._entries)

    def entries(self) -> dict[str, int]:
        return dict(self._entries)

    def record(self, key: str, fire_time_ms: int) -> None:
        if not key:
            raise ValueError("Acknowledgment key must be non-empty")
        self._entries[key] = int(fire_time_ms)
        self._persist()

    def prune_older_than(self, cutoff_ms: int) -> int:
        """Drop entries whose fire instant is before ``cutoff_ms``; return the count removed."""
        stale = [key for key, fire_time_ms in self._entries.items() if fire_time_ms < cutoff_ms]
        for key in stale:
            self._entries.pop(key, None)
        if stale:
            self._persist()
            self._logger.debug("[alerts] Pruned %d acknowledged alert(s)", len(stale))
        return len(stale)

    def cleanup_stale(self, now_ms: int, retention_ms: int = RETENTION_MS) -> int:
        return self.prune_older_than(now_ms - retention_ms)

    def clear_all(self) -> None:
        self._entries.clear()
        self._persist()

    def _persist(self) -> None:
        if self._path is None:
            return
        payload = {"acknowledged": self._entries}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            self._logger.warning("[alerts] Failed to persist acknowledged alerts to %s: %s", self._path, exc)

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            self._logger.warning("[alerts] Failed to load acknowledged alerts from %s: %s", self._path, exc)
            return
        raw = data.get("acknowledged") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            return
        for key, fire_time_ms in raw.items():
            if isinstance(fire_time_ms, bool) or not isinstance(fire_time_ms, int | float):
                self._logger.debug("Skipping invalid acknowledgment entry: %s=%r", key, fire_time_ms)
                continue
            self._entries[str(key)] = int(fire_time_ms)
