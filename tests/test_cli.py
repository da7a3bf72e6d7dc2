"""Tests for CLI entrypoints."""

from __future__ import annotations

from pathlib import Path

import pytest

from kaikanakku import cli


def _run(tmp_path: Path, *args: str) -> int:
    return cli.main(["--db", str(tmp_path / "cli.sqlite3"), *args])


def test_parse_args_custom_values() -> None:
    ns = cli.parse_args(["--db", "/tmp/k.sqlite3", "history", "--sort", "size-asc"])
    assert ns.db == "/tmp/k.sqlite3"
    assert ns.command == "history"
    assert ns.sort == "size-asc"
    assert ns.favorites is False


def test_default_db_path_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(cli.DB_ENV_VAR, "/data/k.sqlite3")
    assert cli.default_db_path() == Path("/data/k.sqlite3")
    monkeypatch.delenv(cli.DB_ENV_VAR)
    assert cli.default_db_path().name == "kaikanakku.sqlite3"


def test_to_kol_and_history(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "to-kol", "2.96") == 0
    assert capsys.readouterr().out.strip() == "1 viral"

    assert _run(tmp_path, "to-cm", "--kol", "1", "--viral", "10", "--cm", "2.5") == 0
    assert capsys.readouterr().out.strip() == "104.50 cm"

    assert _run(tmp_path, "history") == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert "2.96 cm = 1 viral" in "".join(lines)
    assert "1 kol 10 viral 2.5 cm = 104.50 cm" in "".join(lines)


def test_add_and_sub(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "add", "1 kol 10 viral 2.5 cm", "20 viral 1 cm") == 0
    out = capsys.readouterr().out.strip()
    assert out == "(1 kol 10 viral 2.5 cm) + (20 viral 1 cm) = 2 kol 7 viral 0.5 cm"

    assert _run(tmp_path, "sub", "1 kol", "1 viral") == 0
    assert capsys.readouterr().out.strip().endswith("= 23 viral")


def test_sub_order_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "sub", "1 viral", "1 kol") == 2
    err = capsys.readouterr().err
    assert "subtraction-order" in err

    assert _run(tmp_path, "history") == 0
    assert capsys.readouterr().out.strip() == "No history."


@pytest.mark.parametrize(
    ("args", "code"),
    [
        (("to-kol", "abc"), "invalid-number-format"),
        (("to-kol", "-3"), "negative-input"),
        (("to-cm", "--viral", "24"), "invalid-viral"),
        (("to-cm", "--cm", "3"), "invalid-cm"),
        (("add", "1 kol", "lots"), "invalid-number-format"),
        (("add", "-1 kol", "1 viral"), "negative-input"),
    ],
)
def test_invalid_input_exit_code(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    args: tuple[str, ...],
    code: str,
) -> None:
    assert _run(tmp_path, *args) == 2
    assert f"Error ({code})" in capsys.readouterr().err


def test_multiply(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "multiply", "1", "12", "2") == 0
    assert capsys.readouterr().out.strip() == "3 kol 0 viral"


def test_favorite_filter_and_delete(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _run(tmp_path, "to-kol", "72")
    _run(tmp_path, "to-kol", "3")
    capsys.readouterr()

    assert _run(tmp_path, "favorite", "1") == 0
    assert "#1 marked as favorite" in capsys.readouterr().out

    assert _run(tmp_path, "history", "--favorites") == 0
    out = capsys.readouterr().out
    assert "72.00 cm = 1 kol" in out
    assert "3.00 cm" not in out

    assert _run(tmp_path, "history", "--search", "viral") == 0
    out = capsys.readouterr().out
    assert "3.00 cm = 1 viral" in out
    assert "1 kol" not in out

    assert _run(tmp_path, "delete", "1") == 0
    assert _run(tmp_path, "favorite", "1") == 1
    assert "No history entry #1" in capsys.readouterr().err


def test_history_sort_and_recent(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    for value in ("72", "3", "144"):
        _run(tmp_path, "to-kol", value)
    capsys.readouterr()

    assert _run(tmp_path, "history", "--sort", "size-asc") == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert "3.00 cm = 1 viral" in lines[0]
    assert "72.00 cm = 1 kol" in lines[1]
    assert "144.00 cm = 2 kol" in lines[2]

    assert _run(tmp_path, "history", "--recent") == 0
    assert len(capsys.readouterr().out.strip().splitlines()) == 3


def test_settings_and_clear(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(tmp_path, "settings", "rounding_mode", "truncate") == 0
    assert "rounding_mode = TRUNCATE" in capsys.readouterr().out

    assert _run(tmp_path, "settings", "rounding_mode") == 0
    assert capsys.readouterr().out.strip() == "TRUNCATE"

    assert _run(tmp_path, "to-kol", "2.96") == 0
    assert capsys.readouterr().out.strip() == "2 cm"

    assert _run(tmp_path, "settings", "auto_delete_days", "-4") == 2
    assert "Invalid value" in capsys.readouterr().err

    assert _run(tmp_path, "settings", "--reset") == 0
    assert "rounding_mode = ROUND" in capsys.readouterr().out

    assert _run(tmp_path, "clear") == 0
    assert capsys.readouterr().out.strip() == "1 entries deleted"


def test_sweep_and_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(tmp_path, "to-kol", "72")
    assert _run(tmp_path, "settings", "auto_delete_days", "30") == 0
    capsys.readouterr()

    assert _run(tmp_path, "sweep") == 0
    assert capsys.readouterr().out.strip() == "SUCCESS"

    out_path = tmp_path / "out" / "history.xlsx"
    assert _run(tmp_path, "export", str(out_path)) == 0
    assert out_path.exists()
    assert "OK: Output" in capsys.readouterr().out
