"""Suma y resta de medidas Kol + validacion de la entrada del usuario."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

from kaikanakku.conversion import (
    cm_to_kol_formatted,
    format_kol_viral_cm_input,
    kol_to_cm,
)
from kaikanakku.errors import (
    InvalidCmError,
    InvalidNumberFormatError,
    InvalidViralError,
    NegativeInputError,
    SubtractionOrderError,
)
from kaikanakku.model import (
    ConversionResult,
    HistoryRecord,
    Measurement,
    Operation,
    RoundingMode,
    now_millis,
)
from kaikanakku.repository import HistoryRepository
from kaikanakku.units import MAX_CM_INPUT_EXCLUSIVE, MAX_VIRAL_INPUT

logger = logging.getLogger(__name__)

_SYMBOLS: dict[Operation, str] = {
    Operation.ADD: " + ",
    Operation.SUBTRACT: " − ",
}


def add(cm_a: float, cm_b: float) -> float:
    return cm_a + cm_b


def subtract(cm_a: float, cm_b: float) -> float:
    """Difference in cm. Callers guarantee ``cm_a >= cm_b``."""
    return cm_a - cm_b


def parse_number(text: str | None, field: str, *, integer: bool = False) -> float:
    """Parse one numeric input field; blank means zero.

    Raises:
        InvalidNumberFormatError: If the text is not a number (or not a
            whole number when ``integer`` is set).
    """
    raw = (text or "").strip()
    if not raw:
        return 0
    try:
        value = int(raw) if integer else float(raw)
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        raise InvalidNumberFormatError(
            f"{field}: {raw!r} is not a valid number", field=field
        )
    return value


def parse_measurement_fields(
    kol: str | None,
    viral: str | None,
    cm: str | None,
    prefix: str = "",
) -> Measurement:
    """Build a Measurement from the three raw text fields."""
    return Measurement(
        kol=int(parse_number(kol, f"{prefix}kol", integer=True)),
        viral=int(parse_number(viral, f"{prefix}viral", integer=True)),
        cm=float(parse_number(cm, f"{prefix}cm")),
    )


def validate_measurement(measurement: Measurement, prefix: str = "") -> None:
    """Reject raw input before any normalization runs.

    Raises:
        InvalidNumberFormatError: Cm that is NaN or infinite.
        NegativeInputError: Any component below zero.
        InvalidViralError: Viral above 23.
        InvalidCmError: Cm of 3 or more.
    """
    if not math.isfinite(measurement.cm):
        raise InvalidNumberFormatError(
            f"{prefix}cm must be a finite number", field=f"{prefix}cm"
        )
    for name in ("kol", "viral", "cm"):
        if getattr(measurement, name) < 0:
            raise NegativeInputError(
                f"{prefix}{name} must not be negative", field=f"{prefix}{name}"
            )
    if measurement.viral > MAX_VIRAL_INPUT:
        raise InvalidViralError(
            f"{prefix}viral must be between 0 and {MAX_VIRAL_INPUT}",
            field=f"{prefix}viral",
        )
    if measurement.cm >= MAX_CM_INPUT_EXCLUSIVE:
        raise InvalidCmError(
            f"{prefix}cm must be less than {MAX_CM_INPUT_EXCLUSIVE:g}",
            field=f"{prefix}cm",
        )


class Calculator:
    """Adds or subtracts two measurements and saves every result.

    Args:
        history: Where results are saved.
        clock: Epoch-millis source for the history timestamp.
    """

    def __init__(
        self,
        history: HistoryRepository,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._history = history
        self._clock = clock

    def calculate(
        self, operation: Operation, a: Measurement, b: Measurement
    ) -> ConversionResult:
        """Run ``a + b`` or ``a - b``.

        Raises:
            InputValidationError: Invalid operand, or ``b`` longer than
                ``a`` when subtracting. Nothing is saved in that case.
        """
        operation = Operation(operation)
        validate_measurement(a, "a.")
        validate_measurement(b, "b.")

        cm_a = kol_to_cm(a.kol, a.viral, a.cm)
        cm_b = kol_to_cm(b.kol, b.viral, b.cm)
        if cm_a < 0 or cm_b < 0:
            raise NegativeInputError("Lengths must not be negative")

        if operation is Operation.ADD:
            result_cm = add(cm_a, cm_b)
        else:
            if cm_b > cm_a:
                raise SubtractionOrderError(
                    "The second value must not be longer than the first", field="b"
                )
            result_cm = subtract(cm_a, cm_b)

        output_text = cm_to_kol_formatted(result_cm, True, RoundingMode.TRUNCATE)
        input_text = (
            f"({format_kol_viral_cm_input(a.kol, a.viral, a.cm)})"
            f"{_SYMBOLS[operation]}"
            f"({format_kol_viral_cm_input(b.kol, b.viral, b.cm)})"
        )
        logger.info("Calculated %s = %s", input_text, output_text)
        result = ConversionResult(input_text, output_text, result_cm)
        self._history.insert(
            HistoryRecord(
                input_text=input_text,
                output_text=output_text,
                total_cm=result_cm,
                timestamp=self._clock(),
            )
        )
        return result
