"""Modelos tipados para medidas, historial y opciones de formato."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum


class RoundingMode(str, Enum):
    """How the cm remainder is reduced when precision mode is off."""

    ROUND = "ROUND"
    TRUNCATE = "TRUNCATE"


class SortOrder(str, Enum):
    """Orden de la lista completa de historial."""

    BY_DATE = "BY_DATE"
    BY_SIZE_ASC = "BY_SIZE_ASC"
    BY_SIZE_DESC = "BY_SIZE_DESC"


class Operation(str, Enum):
    """Arithmetic operation between two measurements."""

    ADD = "ADD"
    SUBTRACT = "SUBTRACT"


class SweepResult(str, Enum):
    """Outcome reported to the scheduler by the retention sweep."""

    SUCCESS = "SUCCESS"
    RETRY = "RETRY"


@dataclass(frozen=True)
class Measurement:
    """Raw user input in the Kol system (not normalized)."""

    kol: int = 0
    viral: int = 0
    cm: float = 0.0


@dataclass(frozen=True)
class HistoryRecord:
    """One saved conversion or calculation."""

    input_text: str
    output_text: str
    total_cm: float
    timestamp: int
    is_favorite: bool = False
    id: int | None = None

    def with_favorite(self, is_favorite: bool) -> HistoryRecord:
        """Return a copy with the favorite flag replaced."""
        return replace(self, is_favorite=is_favorite)


@dataclass(frozen=True)
class ConversionResult:
    """Texto mostrado al usuario + valor escalar guardado."""

    input_text: str
    output_text: str
    total_cm: float


def now_millis() -> int:
    """Epoch milliseconds, the timestamp unit of history entries."""
    return int(time.time() * 1000)
