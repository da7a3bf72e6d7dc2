"""Punto de entrada: ``python -m kaikanakku``."""

from __future__ import annotations

from kaikanakku.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
