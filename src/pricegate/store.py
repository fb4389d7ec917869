"""Store initialization and validation.

A pricegate store is a directory with a specific layout:
    <store_root>/
      store.json       # Store metadata and configuration
      ledger/          # LMDB environment (gates, balances, passages)
"""

import json
from pathlib import Path
from typing import Optional

from .common import DEFAULT_WORD_BITS, SCHEMA_VERSION, PRODUCER, utc_now_z

# Default LMDB map size (256MB - gate records are small)
DEFAULT_MAP_SIZE = 256 * 1024 * 1024


class StoreExistsError(Exception):
    """Raised when attempting to initialize a store that already exists."""

    def __init__(self, store_root: Path):
        self.store_root = store_root
        super().__init__(f"Store already exists: {store_root}")


class InvalidStoreError(Exception):
    """Raised when a store is missing or invalid."""

    def __init__(self, store_root: Path, reason: str):
        self.store_root = store_root
        self.reason = reason
        super().__init__(f"Invalid store at {store_root}: {reason}")


def init_store(
    store_root: Path,
    *,
    word_bits: Optional[int] = DEFAULT_WORD_BITS,
    map_size: int = DEFAULT_MAP_SIZE,
    allow_reinit: bool = False,
) -> dict:
    """Initialize a new pricegate store.

    Creates the directory structure and store.json file. The LMDB
    environment itself is created lazily by the ledger on first open.

    Args:
        store_root: Root directory for the store.
        word_bits: Word width for stored amounts (None or 0 = unbounded).
        map_size: LMDB map size in bytes.
        allow_reinit: If True, allow re-initialization of existing empty store.

    Returns:
        The store metadata dict.

    Raises:
        StoreExistsError: If store already exists (and not empty or allow_reinit=False).
        ValueError: If word_bits or map_size is out of range.
    """
    store_root = Path(store_root)
    store_json_path = store_root / "store.json"

    if word_bits is not None and (isinstance(word_bits, bool) or word_bits < 0):
        raise ValueError(f"word_bits must be non-negative: {word_bits}")
    if map_size <= 0:
        raise ValueError(f"map_size must be positive: {map_size}")

    if store_json_path.exists():
        raise StoreExistsError(store_root)

    # If directory exists but is not a valid store, check if it's empty
    if store_root.exists():
        contents = list(store_root.iterdir())
        if contents and not allow_reinit:
            raise StoreExistsError(store_root)

    store_root.mkdir(parents=True, exist_ok=True)
    (store_root / "ledger").mkdir(exist_ok=True)

    store_meta = {
        "schema_name": "pricegate.store",
        "schema_version": SCHEMA_VERSION,
        "producer": PRODUCER.copy(),
        "created_at": utc_now_z(),
        "word_bits": word_bits or 0,
        "map_size": map_size,
    }

    with open(store_json_path, "w", encoding="utf-8") as f:
        json.dump(store_meta, f, indent=2)
        f.write("\n")

    return store_meta


def load_store(store_root: Path) -> dict:
    """Load and validate store metadata.

    Args:
        store_root: Root directory of the store.

    Returns:
        The store metadata dict.

    Raises:
        InvalidStoreError: If store is missing or invalid.
    """
    store_root = Path(store_root)
    store_json_path = store_root / "store.json"

    if not store_root.exists():
        raise InvalidStoreError(store_root, "directory does not exist")

    if not store_json_path.exists():
        raise InvalidStoreError(store_root, "missing store.json")

    try:
        with open(store_json_path, "r", encoding="utf-8") as f:
            store_meta = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidStoreError(store_root, f"invalid JSON in store.json: {e}")

    if store_meta.get("schema_name") != "pricegate.store":
        raise InvalidStoreError(
            store_root,
            f"invalid schema_name: {store_meta.get('schema_name')}"
        )

    if not isinstance(store_meta.get("schema_version"), int):
        raise InvalidStoreError(
            store_root,
            f"invalid schema_version: {store_meta.get('schema_version')}"
        )

    word_bits = store_meta.get("word_bits", DEFAULT_WORD_BITS)
    if not isinstance(word_bits, int) or isinstance(word_bits, bool) or word_bits < 0:
        raise InvalidStoreError(store_root, f"invalid word_bits: {word_bits}")
    store_meta["word_bits"] = word_bits

    map_size = store_meta.get("map_size", DEFAULT_MAP_SIZE)
    if not isinstance(map_size, int) or map_size <= 0:
        raise InvalidStoreError(store_root, f"invalid map_size: {map_size}")
    store_meta["map_size"] = map_size

    return store_meta
