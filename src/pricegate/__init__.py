"""pricegate: priced admission gates with multiplicative bumps and linear decay."""

from .clock import BlockClock, StoreClock
from .gate import ClockError, Gate, GateRegistryError, Passage, PricingError
from .ledger import LedgerEnv
from .registry import GateNotFoundError, GateRegistry, InsufficientPaymentError
from .store import InvalidStoreError, StoreExistsError, init_store, load_store
from .transfer import Transfer, TransferFailedError, TransferRejected

__all__ = [
    "BlockClock",
    "StoreClock",
    "Gate",
    "Passage",
    "GateRegistry",
    "LedgerEnv",
    "Transfer",
    "init_store",
    "load_store",
    "GateRegistryError",
    "InsufficientPaymentError",
    "TransferFailedError",
    "TransferRejected",
    "GateNotFoundError",
    "PricingError",
    "ClockError",
    "StoreExistsError",
    "InvalidStoreError",
]

__version__ = "0.1.0"
