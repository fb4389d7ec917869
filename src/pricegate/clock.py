"""Time-unit sources for gate pricing.

Prices decay per time-unit, a monotonic integer counter such as a block
height. A clock is any zero-argument callable returning the current unit.
"""

from typing import Callable

from .ledger import LedgerEnv

Clock = Callable[[], int]


class BlockClock:
    """In-memory monotonic block counter."""

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError(f"Height must be non-negative: {height}")
        self.height = height

    def __call__(self) -> int:
        return self.height

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward.

        Args:
            blocks: Number of time-units to advance (non-negative).

        Returns:
            The new height.
        """
        if blocks < 0:
            raise ValueError(f"Clock cannot move backwards: {blocks}")
        self.height += blocks
        return self.height

    def set(self, height: int) -> int:
        """Jump to an absolute height no earlier than the current one."""
        if height < self.height:
            raise ValueError(
                f"Clock cannot move backwards: {height} < {self.height}"
            )
        self.height = height
        return self.height


class StoreClock:
    """Block height persisted in the ledger's meta DBI.

    Used by the CLI so that successive invocations share one timeline.
    """

    def __init__(self, ledger: LedgerEnv):
        self.ledger = ledger

    def __call__(self) -> int:
        with self.ledger.transaction() as ltxn:
            return ltxn.get_height()

    def advance(self, blocks: int = 1) -> int:
        """Move the persisted height forward by blocks."""
        if blocks < 0:
            raise ValueError(f"Clock cannot move backwards: {blocks}")
        with self.ledger.transaction(write=True) as ltxn:
            height = ltxn.get_height() + blocks
            ltxn.set_height(height)
        return height
