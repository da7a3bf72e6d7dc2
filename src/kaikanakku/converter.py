"""Conversion cm <-> Kol y multiplicacion, guardando cada resultado."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from kaikanakku.calculator import validate_measurement
from kaikanakku.conversion import (
    cm_to_kol_formatted,
    format_fixed,
    format_kol_viral_cm_input,
    kol_to_cm,
    multiply_kol,
    scale_viral,
)
from kaikanakku.errors import InvalidNumberFormatError, NegativeInputError
from kaikanakku.model import ConversionResult, HistoryRecord, Measurement, now_millis
from kaikanakku.repository import HistoryRepository
from kaikanakku.settings import SettingsRepository
from kaikanakku.units import CM_PER_VIRAL

logger = logging.getLogger(__name__)


class Converter:
    """Converts user input and saves each successful result to history.

    Args:
        history: Where results are saved.
        settings: Source of the precision and rounding preferences.
        clock: Epoch-millis source for the history timestamp.
    """

    def __init__(
        self,
        history: HistoryRepository,
        settings: SettingsRepository,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._history = history
        self._settings = settings
        self._clock = clock

    def cm_to_kol(self, cm: float) -> ConversionResult:
        """Centimeters -> Kol text, honoring precision/rounding preferences."""
        _require_finite(cm, "cm")
        if cm < 0:
            raise NegativeInputError("Length must not be negative", field="cm")
        prefs = self._settings.load()
        output_text = cm_to_kol_formatted(
            cm, prefs.precision_enabled, prefs.rounding_mode
        )
        return self._save(f"{format_fixed(cm, 2)} cm", output_text, cm)

    def kol_to_cm(self, measurement: Measurement) -> ConversionResult:
        """Kol / viral / cm -> centimeters (two decimals)."""
        validate_measurement(measurement)
        total_cm = kol_to_cm(measurement.kol, measurement.viral, measurement.cm)
        input_text = format_kol_viral_cm_input(
            measurement.kol, measurement.viral, measurement.cm
        )
        return self._save(input_text, f"{format_fixed(total_cm, 2)} cm", total_cm)

    def multiply(self, kol: int, viral: int, multiplier: float) -> ConversionResult:
        """Scale a kol/viral length by a non-negative factor."""
        validate_measurement(Measurement(kol=kol, viral=viral))
        _require_finite(multiplier, "multiplier")
        if multiplier < 0:
            raise NegativeInputError(
                "Multiplier must not be negative", field="multiplier"
            )
        output_text = multiply_kol(kol, viral, multiplier)
        total_cm = scale_viral(kol, viral, multiplier) * CM_PER_VIRAL
        input_text = f"{format_kol_viral_cm_input(kol, viral, 0)} × {multiplier:g}"
        return self._save(input_text, output_text, total_cm)

    def _save(
        self, input_text: str, output_text: str, total_cm: float
    ) -> ConversionResult:
        logger.info("Converted %s -> %s", input_text, output_text)
        self._history.insert(
            HistoryRecord(
                input_text=input_text,
                output_text=output_text,
                total_cm=total_cm,
                timestamp=self._clock(),
            )
        )
        return ConversionResult(input_text, output_text, total_cm)


def _require_finite(value: float, field: str) -> None:
    if not math.isfinite(value):
        raise InvalidNumberFormatError(
            f"{field}: {value!r} is not a valid number", field=field
        )
