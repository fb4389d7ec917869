"""Gate records and the pricing formula.

A gate's price is a pure function of its stored state and the current
time-unit. Paying the price bumps it by a rational factor; idle time
decays it linearly back toward the floor.

    cost(now) = max(floor, last_price - decay_rate * (now - last_purchase_time))
    next_price = cost * increase_numerator // increase_denominator
"""

from dataclasses import dataclass
from typing import Optional

from .common import decode_amount, encode_amount, word_max


class GateRegistryError(Exception):
    """Base class for registry operation failures."""


class PricingError(GateRegistryError):
    """Raised when a price cannot be computed for a gate."""

    def __init__(self, gate_id: int, reason: str):
        self.gate_id = gate_id
        self.reason = reason
        super().__init__(f"Cannot price gate {gate_id}: {reason}")


class ClockError(GateRegistryError):
    """Raised when the time-unit is earlier than the gate's last purchase."""

    def __init__(self, gate_id: int, now: int, last_purchase_time: int):
        self.gate_id = gate_id
        self.now = now
        self.last_purchase_time = last_purchase_time
        super().__init__(
            f"Time {now} precedes last purchase of gate {gate_id} "
            f"at {last_purchase_time}"
        )


@dataclass
class Gate:
    """One priced admission gate."""

    gate_id: int
    price_floor: int
    decay_rate: int
    increase_numerator: int
    increase_denominator: int
    beneficiary: str
    last_price: int = 0
    last_purchase_time: int = 0

    @classmethod
    def blank(cls, gate_id: int) -> "Gate":
        """All-zero gate, the view of an id that was never assigned."""
        return cls(
            gate_id=gate_id,
            price_floor=0,
            decay_rate=0,
            increase_numerator=0,
            increase_denominator=0,
            beneficiary="",
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "gate_id": self.gate_id,
            "price_floor": self.price_floor,
            "decay_rate": self.decay_rate,
            "increase_numerator": self.increase_numerator,
            "increase_denominator": self.increase_denominator,
            "beneficiary": self.beneficiary,
            "last_price": self.last_price,
            "last_purchase_time": self.last_purchase_time,
        }

    def to_record(self) -> dict:
        """Convert to a msgpack-safe record (gate_id lives in the key)."""
        return {
            "floor": encode_amount(self.price_floor),
            "decay": encode_amount(self.decay_rate),
            "num": encode_amount(self.increase_numerator),
            "den": encode_amount(self.increase_denominator),
            "beneficiary": self.beneficiary,
            "last_price": encode_amount(self.last_price),
            "last_time": encode_amount(self.last_purchase_time),
        }

    @classmethod
    def from_record(cls, gate_id: int, record: dict) -> "Gate":
        """Create from a stored record."""
        return cls(
            gate_id=gate_id,
            price_floor=decode_amount(record["floor"]),
            decay_rate=decode_amount(record["decay"]),
            increase_numerator=decode_amount(record["num"]),
            increase_denominator=decode_amount(record["den"]),
            beneficiary=record["beneficiary"],
            last_price=decode_amount(record["last_price"]),
            last_purchase_time=decode_amount(record["last_time"]),
        )


@dataclass
class Passage:
    """Record of one successful pass-through."""

    sequence: int
    gate_id: int
    payer: Optional[str]
    paid: int
    cost: int
    next_price: int
    time: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "sequence": self.sequence,
            "gate_id": self.gate_id,
            "payer": self.payer,
            "paid": self.paid,
            "cost": self.cost,
            "next_price": self.next_price,
            "time": self.time,
        }

    def to_record(self) -> dict:
        """Convert to a msgpack-safe record (gate_id and sequence live in the key)."""
        return {
            "payer": self.payer,
            "paid": encode_amount(self.paid),
            "cost": encode_amount(self.cost),
            "next_price": encode_amount(self.next_price),
            "time": encode_amount(self.time),
        }

    @classmethod
    def from_record(cls, gate_id: int, sequence: int, record: dict) -> "Passage":
        """Create from a stored record and its key parts."""
        return cls(
            sequence=sequence,
            gate_id=gate_id,
            payer=record["payer"],
            paid=decode_amount(record["paid"]),
            cost=decode_amount(record["cost"]),
            next_price=decode_amount(record["next_price"]),
            time=decode_amount(record["time"]),
        )


def compute_cost(gate: Gate, now: int) -> int:
    """Compute the price of a gate at a time-unit.

    The comparison is done before any subtraction, so a decay larger than
    the last price clamps to the floor instead of going negative. Python
    integers are exact, so an arbitrarily large elapsed time is safe.

    Args:
        gate: Gate state.
        now: Current time-unit.

    Returns:
        Current price, never below gate.price_floor.

    Raises:
        ClockError: If now is earlier than the last purchase.
    """
    elapsed = now - gate.last_purchase_time
    if elapsed < 0:
        raise ClockError(gate.gate_id, now, gate.last_purchase_time)

    decay = gate.decay_rate * elapsed
    if gate.last_price < decay + gate.price_floor:
        return gate.price_floor
    return gate.last_price - decay


def compute_next_price(gate: Gate, cost: int, word_bits: Optional[int] = None) -> int:
    """Compute the base price after a purchase at cost.

    Multiplies before dividing and truncates toward zero.

    Args:
        gate: Gate state.
        cost: Price paid.
        word_bits: Word width the product must fit in (None = unbounded).

    Returns:
        floor(cost * increase_numerator / increase_denominator).

    Raises:
        PricingError: On a zero denominator, or if the product overflows
            the word.
    """
    if gate.increase_denominator == 0:
        raise PricingError(gate.gate_id, "increase denominator is zero")

    product = cost * gate.increase_numerator
    limit = word_max(word_bits)
    if limit is not None and product > limit:
        raise PricingError(
            gate.gate_id, f"price bump overflows {word_bits}-bit word"
        )
    return product // gate.increase_denominator
