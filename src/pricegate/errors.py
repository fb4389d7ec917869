"""Centralized error handling for the pricegate CLI.

This module provides:
- Standard error codes
- Error envelope format for --json output
- Helper functions for consistent error reporting
"""

import json
import sys
from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# Error Codes
# =============================================================================

# Store errors
STORE_NOT_FOUND = "STORE_NOT_FOUND"
STORE_INVALID = "STORE_INVALID"
STORE_EXISTS = "STORE_EXISTS"

# Gate errors
GATE_NOT_FOUND = "GATE_NOT_FOUND"
INSUFFICIENT_PAYMENT = "INSUFFICIENT_PAYMENT"
TRANSFER_FAILED = "TRANSFER_FAILED"
PRICING_ERROR = "PRICING_ERROR"

# Input errors
INVALID_ARGUMENT = "INVALID_ARGUMENT"

# Generic errors
INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Error Envelope
# =============================================================================


@dataclass
class PriceGateError:
    """Structured error for JSON output.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable error message.
        hints: Actionable suggestions for resolving the error.
        details: Context-specific error details.
    """

    code: str
    message: str
    hints: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to error envelope dict."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "hints": self.hints,
                "details": self.details,
            }
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def print_json(self, file=None) -> None:
        """Print error as JSON to file (default: stderr)."""
        if file is None:
            file = sys.stderr
        print(self.to_json(), file=file)

    def print_text(self, file=None) -> None:
        """Print error as human-readable text to file (default: stderr)."""
        if file is None:
            file = sys.stderr
        print(f"Error: {self.message}", file=file)
        if self.hints:
            for hint in self.hints:
                print(f"  Hint: {hint}", file=file)


# =============================================================================
# Factory Functions
# =============================================================================


def store_not_found(path: str) -> PriceGateError:
    """Create error for missing store."""
    return PriceGateError(
        code=STORE_NOT_FOUND,
        message=f"Store does not exist: {path}",
        hints=[
            f"Run: pricegate init {path}",
            "Check that the path is correct",
        ],
        details={"path": path},
    )


def store_invalid(path: str, reason: str = "") -> PriceGateError:
    """Create error for invalid store."""
    msg = f"Invalid store: {path}"
    if reason:
        msg += f" ({reason})"
    return PriceGateError(
        code=STORE_INVALID,
        message=msg,
        hints=[
            "Ensure the store was initialized with 'pricegate init'",
            "Check store.json exists and is valid",
        ],
        details={"path": path, "reason": reason},
    )


def store_exists(path: str) -> PriceGateError:
    """Create error for existing store when initializing."""
    return PriceGateError(
        code=STORE_EXISTS,
        message=f"Store already exists: {path}",
        hints=[
            "Use a different path",
            "Remove existing store if you want to reinitialize",
        ],
        details={"path": path},
    )


def gate_not_found(gate_id: int, store: Optional[str] = None) -> PriceGateError:
    """Create error for missing gate."""
    hints = ["Run: pricegate gate-list --store <path>"]
    if store:
        hints[0] = f"Run: pricegate gate-list --store {store}"
    return PriceGateError(
        code=GATE_NOT_FOUND,
        message=f"Gate not found: {gate_id}",
        hints=hints,
        details={"gate_id": gate_id, "store": store}
        if store
        else {"gate_id": gate_id},
    )


def insufficient_payment(gate_id: int, cost: int, payment: int) -> PriceGateError:
    """Create error for a payment below the current cost."""
    return PriceGateError(
        code=INSUFFICIENT_PAYMENT,
        message=f"Payment {payment} below cost {cost} for gate {gate_id}",
        hints=[
            f"Run: pricegate gate-cost {gate_id} --store <path>",
            "Cost may rise between a query and the purchase",
        ],
        details={"gate_id": gate_id, "cost": str(cost), "payment": str(payment)},
    )


def transfer_failed(gate_id: int, beneficiary: str, reason: str = "") -> PriceGateError:
    """Create error for a rejected value transfer."""
    msg = f"Transfer to {beneficiary} for gate {gate_id} failed"
    if reason:
        msg += f" ({reason})"
    return PriceGateError(
        code=TRANSFER_FAILED,
        message=msg,
        hints=["No state was changed; retry once the beneficiary accepts funds"],
        details={"gate_id": gate_id, "beneficiary": beneficiary, "reason": reason},
    )


def pricing_error(gate_id: int, reason: str) -> PriceGateError:
    """Create error for a gate whose price cannot be computed."""
    return PriceGateError(
        code=PRICING_ERROR,
        message=f"Cannot price gate {gate_id}: {reason}",
        hints=["Gate parameters are immutable; create a new gate"],
        details={"gate_id": gate_id, "reason": reason},
    )


def invalid_argument(arg_name: str, value: str, reason: str = "") -> PriceGateError:
    """Create error for invalid argument."""
    msg = f"Invalid argument '{arg_name}': {value}"
    if reason:
        msg += f" ({reason})"
    return PriceGateError(
        code=INVALID_ARGUMENT,
        message=msg,
        hints=[
            "Check the argument value",
            "Run: pricegate <command> --help",
        ],
        details={"argument": arg_name, "value": value, "reason": reason},
    )


def internal_error(message: str, details: Optional[dict] = None) -> PriceGateError:
    """Create internal error."""
    return PriceGateError(
        code=INTERNAL_ERROR,
        message=f"Internal error: {message}",
        hints=["Please report this issue"],
        details=details or {},
    )


# =============================================================================
# Output Helper
# =============================================================================


def print_error(
    error: PriceGateError,
    json_mode: bool = False,
    file=None,
) -> None:
    """Print error in appropriate format.

    Args:
        error: The error to print.
        json_mode: If True, print as JSON envelope. If False, print as text.
        file: Output file (default: stderr).
    """
    if json_mode:
        error.print_json(file)
    else:
        error.print_text(file)
