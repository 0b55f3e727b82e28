"""
Token telemetry display preference.

A process-wide on/off switch for every telemetry badge, persisted locally and
observable so mounted displays react to a toggle immediately.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import yaml

logger = logging.getLogger(__name__)

PREFERENCE_KEY = "show_message_tokens"

Listener = Callable[[bool], None]


class PreferenceStore:
    """Durable YAML storage for the display preference."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()

    def read(self, default: bool = True) -> bool:
        """Stored value, or ``default`` when nothing usable is stored."""
        if not self.path.exists():
            return default
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, e)
            return default
        value = data.get(PREFERENCE_KEY) if isinstance(data, dict) else None
        if not isinstance(value, bool):
            return default
        return value

    def write(self, value: bool) -> None:
        """Store ``value``, keeping other keys. An unreadable file is replaced."""
        data = {}
        if self.path.exists():
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    loaded = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Replacing unreadable preferences at %s: %s", self.path, e)
                loaded = None
            if isinstance(loaded, dict):
                data = loaded
        data[PREFERENCE_KEY] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f)


class TelemetryPreference:
    """Observable boolean cell.

    Listeners are called synchronously, in subscription order, only when the
    value actually changes.
    """

    def __init__(self, value: bool = True, store: Optional[PreferenceStore] = None):
        self._value = value
        self._store = store
        self._listeners: List[Listener] = []

    @classmethod
    def load(cls, store: PreferenceStore) -> "TelemetryPreference":
        """Read the persisted value. Missing storage means enabled."""
        return cls(store.read(default=True), store)

    @property
    def value(self) -> bool:
        return self._value

    def set(self, value: bool) -> None:
        value = bool(value)
        if value == self._value:
            return
        self._value = value
        if self._store is not None:
            try:
                self._store.write(value)
            except OSError as e:
                logger.warning("Could not persist telemetry preference: %s", e)
        logger.debug("Token telemetry display %s", "enabled" if value else "disabled")
        for listener in list(self._listeners):
            listener(value)

    def toggle(self) -> bool:
        self.set(not self._value)
        return self._value

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
