"""Constantes del sistema Kol / Viral / cm."""

from __future__ import annotations

CM_PER_VIRAL = 3.0
VIRAL_PER_KOL = 24
CM_PER_KOL = CM_PER_VIRAL * VIRAL_PER_KOL  # 72.0

# Largest raw values accepted per input field.
MAX_VIRAL_INPUT = VIRAL_PER_KOL - 1
MAX_CM_INPUT_EXCLUSIVE = CM_PER_VIRAL

# Remainders at or below this are treated as zero when formatting.
CM_TOLERANCE = 0.001

MILLIS_PER_DAY = 86_400_000
