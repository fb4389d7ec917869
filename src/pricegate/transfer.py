"""Value transfer to gate beneficiaries.

Forwarding a payment credits the beneficiary's balance and then hands
control to the beneficiary's receiver, if one is bound. A receiver is
arbitrary code: it may call back into the registry, and it rejects a
transfer by raising. Nothing it returns is used.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .gate import GateRegistryError
from .ledger import LedgerTxn


@dataclass
class Transfer:
    """A value transfer handed to a receiver."""

    gate_id: int
    beneficiary: str
    payer: Optional[str]
    amount: int


Receiver = Callable[[Transfer], Any]


class TransferRejected(Exception):
    """Raised by receivers that refuse a transfer."""


class TransferFailedError(GateRegistryError):
    """Raised when the beneficiary could not receive forwarded funds."""

    def __init__(self, gate_id: int, beneficiary: str, amount: int, reason: str = ""):
        self.gate_id = gate_id
        self.beneficiary = beneficiary
        self.amount = amount
        self.reason = reason
        msg = f"Transfer of {amount} to {beneficiary} for gate {gate_id} failed"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


def send_value(
    ltxn: LedgerTxn,
    transfer: Transfer,
    receiver: Optional[Receiver] = None,
) -> None:
    """Credit the beneficiary and run its receiver.

    Must be called inside the write transaction that staged the purchase,
    so that a failure here rolls the purchase back with it.

    Args:
        ltxn: Active write transaction.
        transfer: Transfer to perform.
        receiver: Beneficiary's receiver (None accepts unconditionally).

    Raises:
        TransferFailedError: If the receiver raised.
    """
    ltxn.credit(transfer.beneficiary, transfer.amount)
    if receiver is None:
        return

    try:
        receiver(transfer)
    except Exception as e:
        raise TransferFailedError(
            transfer.gate_id,
            transfer.beneficiary,
            transfer.amount,
            reason=str(e) or type(e).__name__,
        ) from e
