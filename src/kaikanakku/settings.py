"""Preferencias del usuario guardadas en la tabla key/value."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from kaikanakku.model import RoundingMode
from kaikanakku.storage import SQLiteStore
from kaikanakku.streams import LiveQuery

logger = logging.getLogger(__name__)

KEY_PRECISION_ENABLED = "precision_mode_enabled"
KEY_ROUNDING_MODE = "rounding_mode"
KEY_AUTO_DELETE_DAYS = "auto_delete_days"
KEY_LANGUAGE = "app_language"
KEY_CM_TO_KOL_DEFAULT = "default_mode_cm_to_kol"


@dataclass(frozen=True)
class AppSettings:
    """Current preferences, with the defaults used whenever a key is unset."""

    precision_enabled: bool = False
    rounding_mode: RoundingMode = RoundingMode.ROUND
    auto_delete_days: int = 0
    language: str = "en"
    cm_to_kol_default: bool = True


# clave persistida -> atributo de AppSettings
_KEY_TO_FIELD: dict[str, str] = {
    KEY_PRECISION_ENABLED: "precision_enabled",
    KEY_ROUNDING_MODE: "rounding_mode",
    KEY_AUTO_DELETE_DAYS: "auto_delete_days",
    KEY_LANGUAGE: "language",
    KEY_CM_TO_KOL_DEFAULT: "cm_to_kol_default",
}

SETTINGS_KEYS: tuple[str, ...] = tuple(_KEY_TO_FIELD)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "1", "yes", "on"}:
        return True
    if isinstance(value, str) and value.lower() in {"false", "0", "no", "off"}:
        return False
    raise ValueError(f"Expected a boolean, got {value!r}")


def _coerce_days(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Expected a number of days, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"auto_delete_days must be a whole number, got {value!r}")
    days = int(value)
    if days < 0:
        raise ValueError("auto_delete_days must be >= 0")
    return days


def _coerce_language(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise ValueError("language must not be empty")
    return text


def _coerce_rounding(value: Any) -> RoundingMode:
    if isinstance(value, RoundingMode):
        return value
    return RoundingMode(str(value).upper())


_COERCE: dict[str, Callable[[Any], Any]] = {
    KEY_PRECISION_ENABLED: _coerce_bool,
    KEY_ROUNDING_MODE: _coerce_rounding,
    KEY_AUTO_DELETE_DAYS: _coerce_days,
    KEY_LANGUAGE: _coerce_language,
    KEY_CM_TO_KOL_DEFAULT: _coerce_bool,
}


class SettingsRepository:
    """Reactive read / asynchronous write access to user preferences.

    Args:
        store: Backing SQLite store.
        executor: Where writes run; a dedicated single worker by default.
    """

    def __init__(self, store: SQLiteStore, executor: Executor | None = None) -> None:
        self._store = store
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="settings-writer"
        )

    def load(self) -> AppSettings:
        """Devuelve la configuracion guardada o defaults."""
        return _settings_from_raw(self._store.load_config())

    def get(self, key: str) -> Any:
        return getattr(self.load(), _field_for(key))

    def observe_all(self) -> LiveQuery[AppSettings]:
        return LiveQuery(self.load, self._store.config_changes, distinct=True)

    def observe(self, key: str) -> LiveQuery[Any]:
        """Stream of one preference: current value now, then every change."""
        field = _field_for(key)
        return self.observe_all().map(lambda settings: getattr(settings, field))

    def update(self, key: str, value: Any) -> Future[None]:
        """Validate now, write asynchronously.

        Raises:
            KeyError: Unknown preference key.
            ValueError: Value not valid for the key.
        """
        _field_for(key)
        coerced = _COERCE[key](value)
        payload = {key: json.dumps(_to_json(coerced))}
        logger.info("Updating preference %s=%r", key, coerced)
        return self._executor.submit(self._store.save_config, payload)

    def reset(self) -> Future[None]:
        """Borra todas las preferencias (vuelven los defaults)."""
        logger.info("Resetting all preferences")
        return self._executor.submit(self._store.clear_config, list(SETTINGS_KEYS))

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)


def _field_for(key: str) -> str:
    try:
        return _KEY_TO_FIELD[key]
    except KeyError:
        raise KeyError(f"Unknown preference: {key}") from None


def _to_json(value: Any) -> Any:
    if isinstance(value, RoundingMode):
        return value.value
    return value


def _settings_from_raw(raw: dict[str, str]) -> AppSettings:
    """Parsea valores JSON; valores corruptos vuelven al default."""
    values: dict[str, Any] = {}
    for key, field in _KEY_TO_FIELD.items():
        if key not in raw:
            continue
        try:
            values[field] = _COERCE[key](json.loads(raw[key]))
        except (ValueError, TypeError):
            logger.warning("Ignoring invalid stored value for %s: %r", key, raw[key])
    return AppSettings(**values)
