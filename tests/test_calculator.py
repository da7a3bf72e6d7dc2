from __future__ import annotations

import pytest
from conftest import NOW_MS

from kaikanakku.calculator import (
    Calculator,
    add,
    parse_measurement_fields,
    parse_number,
    subtract,
    validate_measurement,
)
from kaikanakku.errors import (
    InputValidationError,
    InvalidCmError,
    InvalidNumberFormatError,
    InvalidViralError,
    NegativeInputError,
    SubtractionOrderError,
)
from kaikanakku.model import Measurement, Operation
from kaikanakku.repository import HistoryRepository
from kaikanakku.storage import SQLiteStore


def test_add_and_subtract_are_plain_arithmetic() -> None:
    assert add(104.5, 61.0) == 165.5
    assert subtract(72.0, 3.0) == 69.0


def test_parse_number_blank_is_zero() -> None:
    assert parse_number("", "kol") == 0
    assert parse_number(None, "cm") == 0
    assert parse_number(" 2.5 ", "cm") == 2.5
    assert parse_number("7", "kol", integer=True) == 7


@pytest.mark.parametrize(
    ("text", "integer"),
    [("abc", False), ("1.5", True), ("nan", False), ("inf", False), ("1,5", False)],
)
def test_parse_number_rejects_bad_text(text: str, integer: bool) -> None:
    with pytest.raises(InvalidNumberFormatError) as excinfo:
        parse_number(text, "viral", integer=integer)
    assert excinfo.value.field == "viral"
    assert excinfo.value.code == "invalid-number-format"


def test_parse_measurement_fields_prefixes_field_names() -> None:
    assert parse_measurement_fields("1", "", "2.5") == Measurement(1, 0, 2.5)
    with pytest.raises(InvalidNumberFormatError) as excinfo:
        parse_measurement_fields("1", "x", "", prefix="b.")
    assert excinfo.value.field == "b.viral"


def test_validate_measurement_bounds() -> None:
    validate_measurement(Measurement(5, 23, 2.99))
    with pytest.raises(InvalidViralError) as viral_err:
        validate_measurement(Measurement(0, 24, 0), "a.")
    assert viral_err.value.field == "a.viral"
    with pytest.raises(InvalidCmError) as cm_err:
        validate_measurement(Measurement(0, 0, 3.0))
    assert cm_err.value.code == "invalid-cm"
    with pytest.raises(NegativeInputError):
        validate_measurement(Measurement(-1, 0, 0))


def test_validation_errors_are_value_errors() -> None:
    assert issubclass(InputValidationError, ValueError)
    assert issubclass(SubtractionOrderError, InputValidationError)


def test_calculate_add_saves_history(
    history: HistoryRepository, store: SQLiteStore
) -> None:
    calc = Calculator(history, clock=lambda: NOW_MS)
    result = calc.calculate(
        Operation.ADD, Measurement(1, 10, 2.5), Measurement(0, 20, 1.0)
    )
    assert result.total_cm == 165.5
    assert result.output_text == "2 kol 7 viral 0.5 cm"
    assert result.input_text == "(1 kol 10 viral 2.5 cm) + (20 viral 1 cm)"

    saved = store.history()
    assert len(saved) == 1
    assert saved[0].input_text == result.input_text
    assert saved[0].output_text == result.output_text
    assert saved[0].timestamp == NOW_MS
    assert not saved[0].is_favorite


def test_calculate_subtract(history: HistoryRepository) -> None:
    result = Calculator(history).calculate(
        Operation.SUBTRACT, Measurement(1, 0, 0), Measurement(0, 1, 0)
    )
    assert result.total_cm == 69.0
    assert result.output_text == "23 viral"
    assert result.input_text == "(1 kol) − (1 viral)"


def test_calculate_subtract_equal_values_is_zero(history: HistoryRepository) -> None:
    result = Calculator(history).calculate(
        Operation.SUBTRACT, Measurement(2, 3, 1.5), Measurement(2, 3, 1.5)
    )
    assert result.output_text == "0 cm"


def test_calculate_subtract_rejects_longer_subtrahend(
    history: HistoryRepository, store: SQLiteStore
) -> None:
    with pytest.raises(SubtractionOrderError) as excinfo:
        Calculator(history).calculate(
            Operation.SUBTRACT, Measurement(0, 1, 0), Measurement(1, 0, 0)
        )
    assert excinfo.value.code == "subtraction-order"
    assert store.count() == 0


@pytest.mark.parametrize(
    ("a", "b", "error"),
    [
        (Measurement(0, 24, 0), Measurement(), InvalidViralError),
        (Measurement(), Measurement(0, 0, 3.0), InvalidCmError),
        (Measurement(0, -1, 0), Measurement(), NegativeInputError),
        (Measurement(), Measurement(0, 0, -0.5), NegativeInputError),
    ],
)
def test_calculate_rejects_invalid_operands_without_saving(
    history: HistoryRepository,
    store: SQLiteStore,
    a: Measurement,
    b: Measurement,
    error: type[InputValidationError],
) -> None:
    with pytest.raises(error):
        Calculator(history).calculate(Operation.ADD, a, b)
    assert store.count() == 0


def test_same_calculation_twice_is_saved_once(
    history: HistoryRepository, store: SQLiteStore
) -> None:
    calc = Calculator(history)
    calc.calculate(Operation.ADD, Measurement(1, 0, 0), Measurement(0, 1, 0))
    calc.calculate(Operation.ADD, Measurement(1, 0, 0), Measurement(0, 1, 0))
    assert store.count() == 1
