"""Exportacion del historial a Excel formateado."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from dateutil import tz
from openpyxl.styles import Alignment, Border, Font, Side

_HEADER_MAP: dict[str, str] = {
    "id": "#",
    "timestamp": "Date / Time",
    "input_text": "Input",
    "output_text": "Result",
    "total_cm": "Total (cm)",
    "is_favorite": "Favorite",
}

_COLUMN_ORDER = [
    "id",
    "timestamp",
    "input_text",
    "output_text",
    "total_cm",
    "is_favorite",
]


@dataclass(frozen=True)
class ExcelLayout:
    """Layout/formatting configuration for the history sheet."""

    sheet_name: str = "History"


def _prepare_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Ordena columnas, pasa timestamp a hora local sin tz y favoritos a texto."""
    export_df = df.copy()
    cols = [c for c in _COLUMN_ORDER if c in export_df.columns]
    export_df = export_df.loc[:, cols]
    if "timestamp" in export_df.columns:
        stamps = pd.to_datetime(export_df["timestamp"], errors="coerce", utc=True)
        export_df["timestamp"] = stamps.dt.tz_convert(tz.tzlocal()).dt.tz_localize(
            None
        )
    if "is_favorite" in export_df.columns:
        export_df["is_favorite"] = export_df["is_favorite"].map(
            lambda v: "★" if bool(v) else ""
        )
    return export_df


def write_history_xlsx(df: pd.DataFrame, out_path: Path, layout: ExcelLayout) -> None:
    """Write the history as a formatted Excel file.

    Args:
        df: History frame as returned by ``SQLiteStore.history_frame``.
        out_path: Output path for the XLSX file.
        layout: Excel layout parameters.
    """
    out_path.parent.mkdir(parents=True, exist_ok=True)

    export_df = _prepare_frame(df).rename(columns=_HEADER_MAP)

    with pd.ExcelWriter(out_path, engine="openpyxl") as writer:
        export_df.to_excel(writer, index=False, sheet_name=layout.sheet_name)
        ws = writer.book[layout.sheet_name]
        _format_sheet(ws)


def _style_header_row(ws: Any) -> None:
    """Aplica fuente negrita, alineación y borde a la fila de cabecera."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_font = Font(bold=True)
    center = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = center
        cell.border = border


def _style_body_rows(ws: Any) -> None:
    """Bordes en todas las celdas; textos a la izquierda, resto centrado."""
    thin = Side(style="thin")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    center = Alignment(horizontal="center", vertical="center")
    left = Alignment(horizontal="left", vertical="center")
    text_cols = {
        idx
        for name, idx in _get_header_col_index(ws).items()
        if name in (_HEADER_MAP["input_text"], _HEADER_MAP["output_text"])
    }
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = left if cell.column in text_cols else center
            cell.border = border


def _get_header_col_index(ws: Any) -> dict[str, int]:
    """Devuelve mapa nombre de cabecera -> índice de columna (1-based)."""
    headers = [str(cell.value) for cell in ws[1]]
    return {name: idx + 1 for idx, name in enumerate(headers)}


def _apply_column_widths(ws: Any, col_index: dict[str, int]) -> None:
    """Establece anchos de columna para evitar ###."""
    widths = [
        ("#", 6),
        ("Date / Time", 18),
        ("Input", 36),
        ("Result", 24),
        ("Total (cm)", 12),
        ("Favorite", 9),
    ]
    for header, width in widths:
        idx = col_index.get(header)
        if idx is not None:
            letter = ws.cell(row=1, column=idx).column_letter
            ws.column_dimensions[letter].width = width


def _apply_number_formats(ws: Any, col_index: dict[str, int]) -> None:
    """Aplica formatos numéricos por cabecera."""
    fmt_map: dict[str, str] = {
        "Date / Time": "dd/mm/yyyy hh:mm",
        "Total (cm)": "0.00",
    }
    for row in ws.iter_rows(min_row=2):
        for header, fmt in fmt_map.items():
            idx = col_index.get(header)
            if idx is not None:
                row[idx - 1].number_format = fmt


def _format_sheet(ws: Any) -> None:
    """Apply borders, widths and number formats to a worksheet.

    Args:
        ws: openpyxl worksheet.
    """
    _style_header_row(ws)
    _style_body_rows(ws)
    col_index = _get_header_col_index(ws)
    _apply_column_widths(ws, col_index)
    _apply_number_formats(ws, col_index)
