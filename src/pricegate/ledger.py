"""LMDB-backed ledger for gate state.

The ledger is the registry's truth: gate records, forwarded balances and
the passage log all live in one LMDB environment so that a single write
transaction covers every effect of a call.

Environment layout:
    <store>/ledger/
        data.mdb
        lock.mdb

Write transactions nest. A write transaction opened while another is
active on the same thread becomes its child: it sees the parent's staged
writes, and aborting it discards only its own.
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import lmdb
import msgpack

from .common import (
    COUNTER_MAX,
    decode_amount,
    decode_counter,
    encode_amount,
    encode_counter,
)
from .gate import Gate, Passage
from .store import DEFAULT_MAP_SIZE


# DBI names
DBI_META = b"meta"
DBI_GATES = b"gates"
DBI_BALANCES = b"balances"
DBI_PASSAGES = b"passages"

# All DBIs for creation
ALL_DBIS = [
    DBI_META,
    DBI_GATES,
    DBI_BALANCES,
    DBI_PASSAGES,
]

# Keys in the meta DBI
META_GATE_COUNT = b"gate_count"
META_PASSAGE_COUNT = b"passage_count"
META_HEIGHT = b"height"


class LedgerEnv:
    """LMDB environment wrapper for the gate ledger."""

    def __init__(
        self,
        store_root: Path,
        map_size: int = DEFAULT_MAP_SIZE,
        readonly: bool = False,
    ):
        """Initialize ledger environment.

        Args:
            store_root: Root directory of the pricegate store.
            map_size: LMDB map size in bytes.
            readonly: Open in read-only mode.
        """
        self.store_root = Path(store_root)
        self.ledger_dir = self.store_root / "ledger"
        self.map_size = map_size
        self.readonly = readonly
        self._env: Optional[lmdb.Environment] = None
        self._dbis: dict[bytes, lmdb._Database] = {}
        self._local = threading.local()

    @property
    def exists(self) -> bool:
        """Check if the LMDB data file exists."""
        return (self.ledger_dir / "data.mdb").exists()

    def open(self) -> None:
        """Open the LMDB environment."""
        if self._env is not None:
            return

        if not self.exists and self.readonly:
            raise FileNotFoundError(f"Ledger not found: {self.ledger_dir}")

        if not self.readonly:
            self.ledger_dir.mkdir(parents=True, exist_ok=True)

        self._env = lmdb.open(
            str(self.ledger_dir),
            map_size=self.map_size,
            max_dbs=len(ALL_DBIS),
            readonly=self.readonly,
            create=not self.readonly,
            subdir=True,
        )

        for dbi_name in ALL_DBIS:
            self._dbis[dbi_name] = self._env.open_db(
                dbi_name,
                create=not self.readonly,
            )

    def close(self) -> None:
        """Close the LMDB environment."""
        if self._env is not None:
            self._env.close()
            self._env = None
            self._dbis.clear()

    def __enter__(self) -> "LedgerEnv":
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def get_dbi(self, name: bytes) -> lmdb._Database:
        """Get a named database.

        Args:
            name: DBI name (e.g., DBI_GATES).

        Returns:
            LMDB database handle.
        """
        if name not in self._dbis:
            raise ValueError(f"Unknown DBI: {name}")
        return self._dbis[name]

    @property
    def is_open(self) -> bool:
        """Check if the environment is open."""
        return self._env is not None

    @property
    def env(self) -> lmdb.Environment:
        """Get the LMDB environment."""
        if self._env is None:
            raise RuntimeError("Ledger not open")
        return self._env

    @property
    def _write_stack(self) -> list:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = self._local.stack = []
        return stack

    @property
    def in_write(self) -> bool:
        """True while this thread holds an open write transaction."""
        return bool(self._write_stack)

    @contextmanager
    def transaction(self, write: bool = False) -> Iterator["LedgerTxn"]:
        """Open a transaction, committing on success and aborting on error.

        Reads issued inside an active write transaction reuse it, so they
        observe staged writes. Writes inside an active write transaction
        open a child transaction.

        Args:
            write: Whether this is a write transaction.

        Yields:
            LedgerTxn bound to the transaction.
        """
        stack = self._write_stack
        parent = stack[-1] if stack else None

        if not write and parent is not None:
            yield LedgerTxn(self, parent)
            return

        txn = self.env.begin(write=write, parent=parent if write else None)
        if write:
            stack.append(txn)
        try:
            yield LedgerTxn(self, txn)
        except BaseException:
            txn.abort()
            raise
        else:
            txn.commit()
        finally:
            if write:
                stack.pop()


class LedgerTxn:
    """Typed access to ledger records within one transaction."""

    def __init__(self, ledger: LedgerEnv, txn: lmdb.Transaction):
        self.ledger = ledger
        self.txn = txn

    def _get_counter(self, key: bytes) -> int:
        data = self.txn.get(key, db=self.ledger.get_dbi(DBI_META))
        if data is None:
            return 0
        return decode_counter(data)

    def _put_counter(self, key: bytes, value: int) -> None:
        self.txn.put(key, encode_counter(value), db=self.ledger.get_dbi(DBI_META))

    # Gates

    def gate_count(self) -> int:
        """Number of gates ever created (also the highest assigned id)."""
        return self._get_counter(META_GATE_COUNT)

    def allocate_gate_id(self) -> int:
        """Reserve the next sequential gate id."""
        gate_id = self.gate_count() + 1
        self._put_counter(META_GATE_COUNT, gate_id)
        return gate_id

    def get_gate(self, gate_id: int) -> Optional[Gate]:
        """Load a gate record.

        Returns:
            Gate or None if the id was never assigned.
        """
        if gate_id <= 0 or gate_id > COUNTER_MAX:
            # ids are assigned from 1 and keyed in 8 bytes
            return None
        data = self.txn.get(encode_counter(gate_id), db=self.ledger.get_dbi(DBI_GATES))
        if data is None:
            return None
        return Gate.from_record(gate_id, msgpack.unpackb(data))

    def put_gate(self, gate: Gate) -> None:
        """Write a gate record."""
        self.txn.put(
            encode_counter(gate.gate_id),
            msgpack.packb(gate.to_record()),
            db=self.ledger.get_dbi(DBI_GATES),
        )

    def iter_gates(self) -> Iterator[Gate]:
        """Iterate all gates in id order."""
        cursor = self.txn.cursor(db=self.ledger.get_dbi(DBI_GATES))
        for key, value in cursor:
            yield Gate.from_record(decode_counter(key), msgpack.unpackb(value))

    # Balances

    def balance_of(self, account: str) -> int:
        """Total value forwarded to an account."""
        if not account:
            # LMDB rejects empty keys
            return 0
        data = self.txn.get(
            account.encode("utf-8"), db=self.ledger.get_dbi(DBI_BALANCES)
        )
        if data is None:
            return 0
        return decode_amount(msgpack.unpackb(data))

    def credit(self, account: str, amount: int) -> int:
        """Add amount to an account's balance.

        Returns:
            The new balance.
        """
        balance = self.balance_of(account) + amount
        self.txn.put(
            account.encode("utf-8"),
            msgpack.packb(encode_amount(balance)),
            db=self.ledger.get_dbi(DBI_BALANCES),
        )
        return balance

    # Passages

    def allocate_passage_sequence(self) -> int:
        """Reserve the next global passage sequence number."""
        sequence = self._get_counter(META_PASSAGE_COUNT) + 1
        self._put_counter(META_PASSAGE_COUNT, sequence)
        return sequence

    def put_passage(self, passage: Passage) -> None:
        """Append a passage record, keyed by (gate_id, sequence)."""
        key = encode_counter(passage.gate_id) + encode_counter(passage.sequence)
        self.txn.put(
            key,
            msgpack.packb(passage.to_record()),
            db=self.ledger.get_dbi(DBI_PASSAGES),
        )

    def iter_passages(self, gate_id: Optional[int] = None) -> Iterator[Passage]:
        """Iterate passages, optionally for a single gate.

        Args:
            gate_id: Optional gate filter.

        Yields:
            Passages in (gate_id, sequence) key order.
        """
        cursor = self.txn.cursor(db=self.ledger.get_dbi(DBI_PASSAGES))
        if gate_id is None:
            prefix = b""
            if not cursor.first():
                return
        else:
            if gate_id < 0 or gate_id > COUNTER_MAX:
                return
            prefix = encode_counter(gate_id)
            if not cursor.set_range(prefix):
                return

        for key, value in cursor:
            if not key.startswith(prefix):
                break
            # key: gate_id (8 bytes) + sequence (8 bytes)
            yield Passage.from_record(
                decode_counter(key[:8]),
                decode_counter(key[8:]),
                msgpack.unpackb(value),
            )

    # Block height

    def get_height(self) -> int:
        """Current store-persisted block height."""
        return self._get_counter(META_HEIGHT)

    def set_height(self, height: int) -> None:
        self._put_counter(META_HEIGHT, height)
