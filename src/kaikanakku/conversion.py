"""Conversión entre el sistema Kol / Viral / cm y centímetros."""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal

from kaikanakku.errors import NegativeInputError
from kaikanakku.model import Measurement, RoundingMode
from kaikanakku.units import CM_PER_KOL, CM_PER_VIRAL, CM_TOLERANCE, VIRAL_PER_KOL

_COMPONENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(kol|viral|cm)\b", re.IGNORECASE)
_NEGATIVE_RE = re.compile(r"-\s*\d+(?:\.\d+)?\s*(kol|viral|cm)\b", re.IGNORECASE)


def kol_to_cm(kol: int, viral: int, cm: float) -> float:
    """Convert a (possibly denormalized) Kol triple to total centimeters.

    Carry runs cm -> viral first and viral -> kol second, because a cm
    overflow can push viral past 24.

    Args:
        kol: Number of kols.
        viral: Number of virals (may be >= 24).
        cm: Centimeters (may be >= 3).

    Returns:
        Total length in centimeters.
    """
    viral_from_cm = math.floor(cm / CM_PER_VIRAL)
    remaining_cm = cm % CM_PER_VIRAL
    viral += viral_from_cm

    kol_from_viral = viral // VIRAL_PER_KOL
    remaining_viral = viral % VIRAL_PER_KOL
    kol += kol_from_viral

    return kol * CM_PER_KOL + remaining_viral * CM_PER_VIRAL + remaining_cm


def cm_to_kol_formatted(
    total_cm: float,
    precision_mode: bool,
    rounding_mode: RoundingMode | bool = RoundingMode.ROUND,
) -> str:
    """Format centimeters as a Kol system string.

    Zero components are omitted; the cm part is kept when it is the only
    one, so the result is never empty.

    Args:
        total_cm: Length in centimeters.
        precision_mode: Allow a fractional cm remainder (one decimal).
        rounding_mode: ROUND (half-up) or TRUNCATE when precision is off.
            A bool is accepted too (True means ROUND).

    Returns:
        Text such as ``"6 kol 22 viral 2 cm"``, ``"1 kol"`` or ``"1.5 cm"``.
    """
    if total_cm < 0:
        return "0 cm"

    kols = math.floor(total_cm / CM_PER_KOL)
    remainder = total_cm % CM_PER_KOL
    virals = math.floor(remainder / CM_PER_VIRAL)
    final_cm = remainder % CM_PER_VIRAL

    if not precision_mode:
        if _is_round(rounding_mode):
            final_cm = float(math.floor(final_cm + 0.5))
        else:
            final_cm = float(math.trunc(final_cm))
        # El redondeo puede subir a viral y luego a kol.
        if final_cm >= CM_PER_VIRAL:
            virals += 1
            final_cm = 0.0
        if virals >= VIRAL_PER_KOL:
            kols += 1
            virals = 0

    return _join_components(kols, virals, final_cm, whole_cm=not precision_mode)


def format_kol_viral_cm_input(kol: int, viral: int, cm: float) -> str:
    """Echo the raw user input triple, omitting zero components."""
    return _join_components(kol, viral, cm, whole_cm=False)


def scale_viral(kol: int, viral: int, multiplier: float) -> int:
    """Total virals of ``kol``/``viral`` times ``multiplier``, rounded half-up."""
    total_viral = kol * VIRAL_PER_KOL + viral
    return math.floor(total_viral * multiplier + 0.5)


def multiply_kol(kol: int, viral: int, multiplier: float) -> str:
    """Scale a kol/viral length and render it as ``"<kol> kol <viral> viral"``.

    The scaled viral count is rounded to a whole viral before being split
    back into kol and viral. Both parts are always shown.
    """
    new_kol, new_viral = divmod(scale_viral(kol, viral, multiplier), VIRAL_PER_KOL)
    return f"{new_kol} kol {new_viral} viral"


def parse_measurement(text: str) -> Measurement:
    """Parse text like ``"1 kol 5 viral 1.5 cm"`` into a raw Measurement.

    Components may appear in any order and be repeated (they add up).

    Raises:
        NegativeInputError: If a component has a leading minus sign.
        ValueError: If the text holds no recognizable component or has
            leftover characters.
    """
    negative = _NEGATIVE_RE.search(text)
    if negative:
        unit = negative.group(1).lower()
        raise NegativeInputError(f"{unit} must not be negative", field=unit)
    kol = 0
    viral = 0
    cm = 0.0
    found = False
    for match in _COMPONENT_RE.finditer(text):
        found = True
        amount, unit = match.group(1), match.group(2).lower()
        if unit == "cm":
            cm += float(amount)
        elif "." in amount:
            raise ValueError(f"{unit} must be a whole number: {amount!r}")
        elif unit == "kol":
            kol += int(amount)
        else:
            viral += int(amount)
    leftover = _COMPONENT_RE.sub("", text).strip()
    if not found or leftover:
        raise ValueError(f"Not a Kol measurement: {text!r}")
    return Measurement(kol=kol, viral=viral, cm=cm)


def _is_round(rounding_mode: RoundingMode | bool) -> bool:
    if isinstance(rounding_mode, bool):
        return rounding_mode
    return RoundingMode(rounding_mode) is RoundingMode.ROUND


def _join_components(kols: int, virals: int, cm: float, *, whole_cm: bool) -> str:
    """Arma el texto omitiendo componentes en cero."""
    parts: list[str] = []
    if kols > 0:
        parts.append(f"{kols} kol")
    if virals > 0:
        parts.append(f"{virals} viral")
    if cm > CM_TOLERANCE or not parts:
        parts.append(f"{_format_cm(cm, whole_cm=whole_cm)} cm")
    return " ".join(parts)


def format_fixed(value: float, places: int) -> str:
    """Fixed-point text with half-up rounding of the shortest decimal repr."""
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def _format_cm(cm: float, *, whole_cm: bool) -> str:
    """Cero decimales si es entero (o si se pide entero), si no uno."""
    places = 0 if whole_cm or float(cm).is_integer() else 1
    return format_fixed(cm, places)
