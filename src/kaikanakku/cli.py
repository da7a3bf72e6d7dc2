"""CLI para convertir, calcular y consultar el historial Kol / Viral / cm."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from dateutil import tz

from kaikanakku.calculator import Calculator, parse_measurement_fields, parse_number
from kaikanakku.conversion import format_fixed, parse_measurement
from kaikanakku.converter import Converter
from kaikanakku.errors import (
    InputValidationError,
    InvalidNumberFormatError,
    NegativeInputError,
    StorageError,
)
from kaikanakku.excel_writer import ExcelLayout, write_history_xlsx
from kaikanakku.history import HistoryFilter, HistoryQueryComposer
from kaikanakku.model import (
    HistoryRecord,
    Measurement,
    Operation,
    RoundingMode,
    SortOrder,
    SweepResult,
)
from kaikanakku.repository import (
    HistoryRepository,
    get_history_repository,
    get_settings_repository,
    reset_repositories,
)
from kaikanakku.retention import run_retention_sweep
from kaikanakku.settings import SETTINGS_KEYS, AppSettings

DB_ENV_VAR = "KAIKANAKKU_DB"

_SORT_CHOICES: dict[str, SortOrder] = {
    "date": SortOrder.BY_DATE,
    "size-asc": SortOrder.BY_SIZE_ASC,
    "size-desc": SortOrder.BY_SIZE_DESC,
}


def default_db_path() -> Path:
    env = os.environ.get(DB_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".kaikanakku" / "kaikanakku.sqlite3"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argparse namespace.
    """
    parser = argparse.ArgumentParser(
        prog="kaikanakku",
        description="Kol / Viral / cm length converter with history.",
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"SQLite database (default: ${DB_ENV_VAR} or ~/.kaikanakku).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress.")
    sub = parser.add_subparsers(dest="command", required=True)

    to_kol = sub.add_parser("to-kol", help="Convert centimeters to kol/viral/cm.")
    to_kol.add_argument("cm", help="Length in centimeters.")

    to_cm = sub.add_parser("to-cm", help="Convert kol/viral/cm to centimeters.")
    to_cm.add_argument("--kol", default="", help="Kol (whole number).")
    to_cm.add_argument("--viral", default="", help="Viral, 0-23.")
    to_cm.add_argument("--cm", default="", help="Centimeters, below 3.")

    for name, help_text in (("add", "A + B"), ("sub", "A - B")):
        calc = sub.add_parser(name, help=help_text)
        calc.add_argument("a", help='First value, e.g. "1 kol 5 viral 1.5 cm".')
        calc.add_argument("b", help="Second value.")

    mul = sub.add_parser("multiply", help="Multiply a kol/viral length.")
    mul.add_argument("kol")
    mul.add_argument("viral")
    mul.add_argument("factor")

    hist = sub.add_parser("history", help="List saved conversions.")
    hist.add_argument("--search", default="", help="Substring to look for.")
    hist.add_argument("--favorites", action="store_true", help="Favorites only.")
    hist.add_argument("--sort", choices=list(_SORT_CHOICES), default="date")
    hist.add_argument("--recent", action="store_true", help="Only the last 5.")

    fav = sub.add_parser("favorite", help="Mark (or unmark) a history entry.")
    fav.add_argument("id", type=int)
    fav.add_argument("--off", action="store_true", help="Remove the mark.")

    delete = sub.add_parser("delete", help="Delete one history entry.")
    delete.add_argument("id", type=int)

    sub.add_parser("clear", help="Delete all history.")

    settings = sub.add_parser("settings", help="Show or change preferences.")
    settings.add_argument("key", nargs="?", choices=list(SETTINGS_KEYS))
    settings.add_argument("value", nargs="?")
    settings.add_argument("--reset", action="store_true", help="Restore defaults.")

    sub.add_parser("sweep", help="Run the auto-delete sweep now.")

    export = sub.add_parser("export", help="Export history to Excel.")
    export.add_argument("path", help="Output .xlsx path.")

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        Exit code: 0 on success, 1 on storage errors, 2 on invalid input.
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if ns.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = Path(ns.db).expanduser() if ns.db else default_db_path()
    try:
        return _dispatch(ns, db_path)
    except InputValidationError as exc:
        field = f" [{exc.field}]" if exc.field else ""
        print(f"Error ({exc.code}){field}: {exc}", file=sys.stderr)
        return 2
    except StorageError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    finally:
        reset_repositories()


def _dispatch(ns: argparse.Namespace, db_path: Path) -> int:
    history = get_history_repository(db_path)
    settings = get_settings_repository(db_path)
    command = ns.command

    if command == "to-kol":
        cm = parse_number(ns.cm, "cm")
        result = Converter(history, settings).cm_to_kol(cm)
        print(result.output_text)
    elif command == "to-cm":
        measurement = parse_measurement_fields(ns.kol, ns.viral, ns.cm)
        result = Converter(history, settings).kol_to_cm(measurement)
        print(result.output_text)
    elif command in ("add", "sub"):
        operation = Operation.ADD if command == "add" else Operation.SUBTRACT
        a = _measurement_arg(ns.a, "a")
        b = _measurement_arg(ns.b, "b")
        result = Calculator(history).calculate(operation, a, b)
        print(f"{result.input_text} = {result.output_text}")
    elif command == "multiply":
        kol = int(parse_number(ns.kol, "kol", integer=True))
        viral = int(parse_number(ns.viral, "viral", integer=True))
        factor = parse_number(ns.factor, "factor")
        result = Converter(history, settings).multiply(kol, viral, factor)
        print(result.output_text)
    elif command == "history":
        _print_records(_query_history(history, ns))
    elif command == "favorite":
        record = _require_record(history, ns.id)
        if record is None:
            return 1
        history.set_favorite(record, not ns.off).result()
        print(f"#{record.id} {'unmarked' if ns.off else 'marked'} as favorite")
    elif command == "delete":
        record = _require_record(history, ns.id)
        if record is None:
            return 1
        history.delete(record).result()
        print(f"#{record.id} deleted")
    elif command == "clear":
        deleted = history.delete_all().result()
        print(f"{deleted} entries deleted")
    elif command == "settings":
        if ns.reset:
            settings.reset().result()
        elif ns.key is not None:
            if ns.value is None:
                print(_format_pref(settings.get(ns.key)))
                return 0
            try:
                settings.update(ns.key, ns.value).result()
            except ValueError as exc:
                print(f"Invalid value for {ns.key}: {exc}", file=sys.stderr)
                return 2
        _print_settings(settings.load())
    elif command == "sweep":
        outcome = run_retention_sweep(history, settings)
        print(outcome.value)
        return 0 if outcome is SweepResult.SUCCESS else 1
    elif command == "export":
        out_path = Path(ns.path).expanduser()
        write_history_xlsx(history.store.history_frame(), out_path, ExcelLayout())
        print(f"OK: Output: {out_path}")
    return 0


def _measurement_arg(text: str, field: str) -> Measurement:
    try:
        return parse_measurement(text)
    except NegativeInputError as exc:
        raise NegativeInputError(str(exc), field=f"{field}.{exc.field}") from None
    except ValueError as exc:
        raise InvalidNumberFormatError(str(exc), field=field) from None


def _query_history(
    history: HistoryRepository, ns: argparse.Namespace
) -> list[HistoryRecord]:
    if ns.recent:
        return history.recent().current()
    composer = HistoryQueryComposer(
        history,
        HistoryFilter(
            sort_order=_SORT_CHOICES[ns.sort],
            search_query=ns.search,
            favorites_only=ns.favorites,
        ),
    )
    try:
        return composer.latest or []
    finally:
        composer.close()


def _require_record(
    history: HistoryRepository, record_id: int
) -> HistoryRecord | None:
    record = history.get(record_id)
    if record is None:
        print(f"No history entry #{record_id}", file=sys.stderr)
    return record


def _print_records(records: list[HistoryRecord]) -> None:
    if not records:
        print("No history.")
        return
    local = tz.tzlocal()
    for record in records:
        when = datetime.fromtimestamp(record.timestamp / 1000, tz=local)
        star = "*" if record.is_favorite else " "
        print(
            f"{record.id:>5} {star} {when:%d/%m/%Y %H:%M}  "
            f"{record.input_text} = {record.output_text}  "
            f"({format_fixed(record.total_cm, 2)} cm)"
        )


def _format_pref(value: object) -> str:
    if isinstance(value, RoundingMode):
        return value.value
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _print_settings(prefs: AppSettings) -> None:
    print(f"precision_mode_enabled = {_format_pref(prefs.precision_enabled)}")
    print(f"rounding_mode = {_format_pref(prefs.rounding_mode)}")
    print(f"auto_delete_days = {prefs.auto_delete_days}")
    print(f"app_language = {prefs.language}")
    print(f"default_mode_cm_to_kol = {_format_pref(prefs.cm_to_kol_default)}")
