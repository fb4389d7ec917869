"""Gate registry: creation, pricing and pass-through.

The registry owns an append-only, id-addressed collection of gates held
in the ledger. Every mutating call runs in one ledger write transaction:
either all of its effects land or none do.

Registration is open. Any caller may create a gate; restricting that is
the job of a wrapping layer.
"""

import threading
from pathlib import Path
from typing import Optional

from .clock import BlockClock, Clock
from .common import DEFAULT_WORD_BITS, check_amount
from .gate import (
    Gate,
    GateRegistryError,
    Passage,
    compute_cost,
    compute_next_price,
)
from .ledger import LedgerEnv
from .store import DEFAULT_MAP_SIZE, load_store
from .transfer import Receiver, Transfer, send_value


class InsufficientPaymentError(GateRegistryError):
    """Raised when the attached payment is below the gate's current cost."""

    def __init__(self, gate_id: int, cost: int, payment: int):
        self.gate_id = gate_id
        self.cost = cost
        self.payment = payment
        super().__init__(
            f"Payment {payment} below cost {cost} for gate {gate_id}"
        )


class GateNotFoundError(GateRegistryError):
    """Raised when passing through a gate id that was never assigned."""

    def __init__(self, gate_id: int):
        self.gate_id = gate_id
        super().__init__(f"Gate not found: {gate_id}")


class GateRegistry:
    """Registry of priced admission gates."""

    def __init__(
        self,
        ledger: LedgerEnv,
        clock: Optional[Clock] = None,
        word_bits: Optional[int] = DEFAULT_WORD_BITS,
    ):
        """Initialize the registry.

        Args:
            ledger: Ledger environment (opened here if not already open).
            clock: Time-unit source. Defaults to an in-memory BlockClock.
            word_bits: Word width for stored amounts (None or 0 = unbounded).
        """
        self.ledger = ledger
        self.clock = clock if clock is not None else BlockClock()
        self.word_bits = word_bits or None
        self._receivers: dict[str, Receiver] = {}
        self._lock = threading.RLock()
        self.ledger.open()

    @classmethod
    def open(cls, store_root: Path, clock: Optional[Clock] = None) -> "GateRegistry":
        """Open the registry of an initialized store.

        Configuration (word width, map size) comes from store.json.

        Args:
            store_root: Root directory of the store.
            clock: Time-unit source. Defaults to an in-memory BlockClock.

        Raises:
            InvalidStoreError: If the store is missing or invalid.
        """
        store_meta = load_store(store_root)
        ledger = LedgerEnv(
            store_root, map_size=store_meta.get("map_size", DEFAULT_MAP_SIZE)
        )
        return cls(ledger, clock=clock, word_bits=store_meta["word_bits"])

    def close(self) -> None:
        self.ledger.close()

    def __enter__(self) -> "GateRegistry":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def bind_receiver(self, account: str, receiver: Optional[Receiver]) -> None:
        """Bind code to run when value is forwarded to an account.

        Receivers are process-local; they are not persisted.

        Args:
            account: Beneficiary account.
            receiver: Callable taking a Transfer, or None to unbind.
        """
        if receiver is None:
            self._receivers.pop(account, None)
        else:
            self._receivers[account] = receiver

    def create_gate(
        self,
        price_floor: int,
        decay_rate: int,
        increase_numerator: int,
        increase_denominator: int,
        beneficiary: str,
    ) -> int:
        """Register a new gate.

        Parameters are stored verbatim. Zero values, including a zero
        denominator, are accepted.

        Returns:
            The new gate id (sequential, starting at 1).

        Raises:
            ValueError: If a parameter is not an unsigned integer that fits
                the word, or beneficiary is empty.
        """
        for name, value in (
            ("price_floor", price_floor),
            ("decay_rate", decay_rate),
            ("increase_numerator", increase_numerator),
            ("increase_denominator", increase_denominator),
        ):
            check_amount(name, value, self.word_bits)
        if not isinstance(beneficiary, str) or not beneficiary:
            raise ValueError(f"beneficiary must be a non-empty string: {beneficiary!r}")

        with self._lock, self.ledger.transaction(write=True) as ltxn:
            gate_id = ltxn.allocate_gate_id()
            ltxn.put_gate(Gate(
                gate_id=gate_id,
                price_floor=price_floor,
                decay_rate=decay_rate,
                increase_numerator=increase_numerator,
                increase_denominator=increase_denominator,
                beneficiary=beneficiary,
            ))
        return gate_id

    def get_cost(self, gate_id: int, at: Optional[int] = None) -> int:
        """Current price of a gate.

        An id that was never assigned reads as an all-zero gate and costs
        0. That is not a validity check; use get_gate for that.

        Args:
            gate_id: Gate id.
            at: Time-unit to price at (default: the registry clock).

        Raises:
            ClockError: If the time precedes the gate's last purchase.
        """
        now = self.clock() if at is None else at
        with self._lock, self.ledger.transaction() as ltxn:
            gate = ltxn.get_gate(gate_id) or Gate.blank(gate_id)
        return compute_cost(gate, now)

    def pass_through(
        self,
        gate_id: int,
        payer: Optional[str] = None,
        payment: int = 0,
    ) -> Passage:
        """Buy passage through a gate.

        The cost is recomputed at execution time and may differ from an
        earlier get_cost. The bumped price is staged before the payment is
        forwarded, so a receiver that calls back in pays the new price.
        The whole payment goes to the beneficiary; nothing is refunded.

        Args:
            gate_id: Gate id.
            payer: Opaque payer label, recorded on the passage.
            payment: Attached payment in the smallest currency unit.

        Returns:
            The recorded Passage.

        Raises:
            GateNotFoundError: If the id was never assigned.
            InsufficientPaymentError: If payment is below the current cost.
            PricingError: If the next price cannot be computed.
            ClockError: If the clock precedes the gate's last purchase.
            TransferFailedError: If the beneficiary rejected the funds.
        """
        check_amount("payment", payment, self.word_bits)

        with self._lock, self.ledger.transaction(write=True) as ltxn:
            now = self.clock()
            gate = ltxn.get_gate(gate_id)
            if gate is None:
                raise GateNotFoundError(gate_id)

            cost = compute_cost(gate, now)
            if payment < cost:
                raise InsufficientPaymentError(gate_id, cost, payment)

            next_price = compute_next_price(gate, cost, self.word_bits)

            gate.last_price = next_price
            gate.last_purchase_time = now
            ltxn.put_gate(gate)

            passage = Passage(
                sequence=ltxn.allocate_passage_sequence(),
                gate_id=gate_id,
                payer=payer,
                paid=payment,
                cost=cost,
                next_price=next_price,
                time=now,
            )
            ltxn.put_passage(passage)

            if payment > 0:
                send_value(
                    ltxn,
                    Transfer(
                        gate_id=gate_id,
                        beneficiary=gate.beneficiary,
                        payer=payer,
                        amount=payment,
                    ),
                    self._receivers.get(gate.beneficiary),
                )

        return passage

    def get_gate(self, gate_id: int) -> Optional[Gate]:
        """Load a gate, or None if the id was never assigned."""
        with self._lock, self.ledger.transaction() as ltxn:
            return ltxn.get_gate(gate_id)

    def gate_count(self) -> int:
        with self._lock, self.ledger.transaction() as ltxn:
            return ltxn.gate_count()

    def list_gates(self) -> list[Gate]:
        """All gates in id order."""
        with self._lock, self.ledger.transaction() as ltxn:
            return list(ltxn.iter_gates())

    def balance_of(self, account: str) -> int:
        """Total value forwarded to an account."""
        with self._lock, self.ledger.transaction() as ltxn:
            return ltxn.balance_of(account)

    def list_passages(self, gate_id: Optional[int] = None) -> list[Passage]:
        """Passage log in sequence order, optionally for one gate."""
        with self._lock, self.ledger.transaction() as ltxn:
            passages = list(ltxn.iter_passages(gate_id))
        return sorted(passages, key=lambda p: p.sequence)
