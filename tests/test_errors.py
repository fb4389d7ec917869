"""Tests for the CLI error envelope module.

Tests verify:
- Error envelope structure is correct
- Error codes are valid
- Factory functions produce correct errors
- JSON output is valid
"""

import json
import sys

from pricegate.errors import (
    PriceGateError,
    STORE_NOT_FOUND,
    STORE_INVALID,
    STORE_EXISTS,
    GATE_NOT_FOUND,
    INSUFFICIENT_PAYMENT,
    TRANSFER_FAILED,
    PRICING_ERROR,
    INVALID_ARGUMENT,
    INTERNAL_ERROR,
    store_not_found,
    store_invalid,
    store_exists,
    gate_not_found,
    insufficient_payment,
    transfer_failed,
    pricing_error,
    invalid_argument,
    internal_error,
    print_error,
)


class TestPriceGateError:
    """Tests for PriceGateError dataclass."""

    def test_to_dict_structure(self):
        """Error dict should have correct structure."""
        error = PriceGateError(
            code="TEST_ERROR",
            message="Test message",
            hints=["Hint 1", "Hint 2"],
            details={"key": "value"},
        )

        result = error.to_dict()

        assert "error" in result
        assert result["error"]["code"] == "TEST_ERROR"
        assert result["error"]["message"] == "Test message"
        assert result["error"]["hints"] == ["Hint 1", "Hint 2"]
        assert result["error"]["details"] == {"key": "value"}

    def test_to_dict_empty_hints_and_details(self):
        error = PriceGateError(code="TEST_ERROR", message="Test message")

        result = error.to_dict()

        assert result["error"]["hints"] == []
        assert result["error"]["details"] == {}

    def test_to_json_valid(self):
        error = PriceGateError(code="TEST_ERROR", message="Test message")

        parsed = json.loads(error.to_json())

        assert parsed["error"]["code"] == "TEST_ERROR"


class TestErrorCodes:
    """Tests for error code constants."""

    def test_codes_are_uppercase(self):
        codes = [
            STORE_NOT_FOUND,
            STORE_INVALID,
            STORE_EXISTS,
            GATE_NOT_FOUND,
            INSUFFICIENT_PAYMENT,
            TRANSFER_FAILED,
            PRICING_ERROR,
            INVALID_ARGUMENT,
            INTERNAL_ERROR,
        ]

        for code in codes:
            assert code == code.upper(), f"Code not uppercase: {code}"
        assert len(set(codes)) == len(codes)


class TestFactoryFunctions:
    """Tests for error factory functions."""

    def test_store_not_found(self):
        error = store_not_found("/path/to/store")

        assert error.code == STORE_NOT_FOUND
        assert "/path/to/store" in error.message
        assert error.details["path"] == "/path/to/store"
        assert "pricegate init /path/to/store" in error.hints[0]

    def test_store_invalid(self):
        error = store_invalid("/path/to/store", "missing store.json")

        assert error.code == STORE_INVALID
        assert "missing store.json" in error.message
        assert error.details["reason"] == "missing store.json"

    def test_store_exists(self):
        error = store_exists("/path/to/store")

        assert error.code == STORE_EXISTS
        assert "/path/to/store" in error.message

    def test_gate_not_found(self):
        error = gate_not_found(7, "/path/to/store")

        assert error.code == GATE_NOT_FOUND
        assert "7" in error.message
        assert error.details == {"gate_id": 7, "store": "/path/to/store"}

    def test_gate_not_found_without_store(self):
        error = gate_not_found(7)

        assert error.details == {"gate_id": 7}

    def test_insufficient_payment(self):
        """Amounts travel as strings so wide values stay JSON-safe."""
        error = insufficient_payment(1, 2**100, 5)

        assert error.code == INSUFFICIENT_PAYMENT
        assert error.details["cost"] == str(2**100)
        assert error.details["payment"] == "5"
        json.loads(error.to_json())

    def test_transfer_failed(self):
        error = transfer_failed(3, "contract", "not accepting")

        assert error.code == TRANSFER_FAILED
        assert "contract" in error.message
        assert "not accepting" in error.message

    def test_pricing_error(self):
        error = pricing_error(3, "increase denominator is zero")

        assert error.code == PRICING_ERROR
        assert "denominator" in error.message

    def test_invalid_argument(self):
        error = invalid_argument("--payment", "-1", "must be non-negative")

        assert error.code == INVALID_ARGUMENT
        assert "--payment" in error.message
        assert error.details["value"] == "-1"

    def test_internal_error(self):
        error = internal_error("Unexpected state")

        assert error.code == INTERNAL_ERROR
        assert "Unexpected state" in error.message
        assert "report" in error.hints[0].lower()


class TestPrintError:
    """Tests for print_error function."""

    def test_json_mode(self, capsys):
        error = PriceGateError(code="TEST", message="Test")

        print_error(error, json_mode=True, file=sys.stdout)

        captured = capsys.readouterr()
        parsed = json.loads(captured.out)
        assert parsed["error"]["code"] == "TEST"

    def test_text_mode(self, capsys):
        error = PriceGateError(
            code="TEST",
            message="Test message",
            hints=["Do something"],
        )

        print_error(error, json_mode=False, file=sys.stdout)

        captured = capsys.readouterr()
        assert "Error: Test message" in captured.out
        assert "Hint: Do something" in captured.out

    def test_defaults_to_stderr(self, capsys):
        print_error(PriceGateError(code="TEST", message="Oops"))

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error: Oops" in captured.err
