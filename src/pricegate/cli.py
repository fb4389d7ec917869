"""Command-line interface for pricegate."""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

import lmdb

from .clock import StoreClock
from .errors import (
    gate_not_found,
    insufficient_payment,
    internal_error,
    invalid_argument,
    pricing_error,
    print_error,
    store_exists,
    store_invalid,
    store_not_found,
    transfer_failed,
)
from .gate import ClockError, PricingError
from .registry import GateNotFoundError, GateRegistry, InsufficientPaymentError
from .store import InvalidStoreError, StoreExistsError, init_store
from .transfer import TransferFailedError


def _open_registry(args: argparse.Namespace) -> Optional[GateRegistry]:
    """Open the store's registry on its persisted block height.

    Prints an error and returns None if the store is unusable.
    """
    store_root = Path(args.store)
    json_mode = getattr(args, "json", False)

    if not store_root.exists():
        print_error(store_not_found(str(store_root)), json_mode)
        return None

    try:
        registry = GateRegistry.open(store_root)
    except InvalidStoreError as e:
        print_error(store_invalid(str(store_root), e.reason), json_mode)
        return None

    registry.clock = StoreClock(registry.ledger)
    return registry


def cmd_init(args: argparse.Namespace) -> int:
    """Handle the init command."""
    store_root = Path(args.store)

    if args.word_bits < 0:
        print_error(invalid_argument("--word-bits", str(args.word_bits), "must be >= 0"))
        return 1

    try:
        store_meta = init_store(store_root, word_bits=args.word_bits)
    except StoreExistsError:
        print_error(store_exists(str(store_root)))
        return 1

    print(f"Initialized store: {store_root}")
    if args.verbose:
        print(f"  Schema version: {store_meta['schema_version']}")
        print(f"  Word bits: {store_meta['word_bits'] or 'unbounded'}")
        print(f"  Created: {store_meta['created_at']}")
    return 0


def cmd_gate_create(args: argparse.Namespace) -> int:
    """Handle the gate-create command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        try:
            gate_id = registry.create_gate(
                price_floor=args.floor,
                decay_rate=args.decay,
                increase_numerator=args.num,
                increase_denominator=args.den,
                beneficiary=args.beneficiary,
            )
        except ValueError as e:
            print_error(invalid_argument("gate", "parameters", str(e)), args.json)
            return 1

        if args.json:
            print(json.dumps(registry.get_gate(gate_id).to_dict(), indent=2))
        else:
            print(f"Created gate: {gate_id}")
    return 0


def cmd_gate_cost(args: argparse.Namespace) -> int:
    """Handle the gate-cost command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        try:
            cost = registry.get_cost(args.id, at=args.at)
        except ClockError as e:
            print_error(invalid_argument("--at", str(args.at), str(e)), args.json)
            return 1

        if args.json:
            print(json.dumps({"gate_id": args.id, "cost": cost}, indent=2))
        else:
            print(cost)
    return 0


def cmd_gate_show(args: argparse.Namespace) -> int:
    """Handle the gate-show command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        gate = registry.get_gate(args.id)
        if gate is None:
            print_error(gate_not_found(args.id, args.store), args.json)
            return 1
        cost = registry.get_cost(args.id)

    if args.json:
        data = gate.to_dict()
        data["cost"] = cost
        print(json.dumps(data, indent=2))
    else:
        print(f"Gate: {gate.gate_id}")
        print(f"  Beneficiary: {gate.beneficiary}")
        print(f"  Floor: {gate.price_floor}")
        print(f"  Decay rate: {gate.decay_rate}")
        print(f"  Increase: {gate.increase_numerator}/{gate.increase_denominator}")
        print(f"  Last price: {gate.last_price}")
        print(f"  Last purchase: {gate.last_purchase_time}")
        print(f"  Current cost: {cost}")
    return 0


def cmd_gate_list(args: argparse.Namespace) -> int:
    """Handle the gate-list command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        gates = registry.list_gates()
        costs = {g.gate_id: registry.get_cost(g.gate_id) for g in gates}

    if args.json:
        data = []
        for gate in gates:
            entry = gate.to_dict()
            entry["cost"] = costs[gate.gate_id]
            data.append(entry)
        print(json.dumps({"gates": data, "count": len(data)}, indent=2))
        return 0

    if not gates:
        print("No gates found.")
        return 0

    for gate in gates:
        print(
            f"{gate.gate_id}  cost={costs[gate.gate_id]}  "
            f"floor={gate.price_floor}  beneficiary={gate.beneficiary}"
        )
    return 0


def cmd_pass(args: argparse.Namespace) -> int:
    """Handle the pass command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        try:
            passage = registry.pass_through(args.id, args.payer, args.payment)
        except GateNotFoundError:
            print_error(gate_not_found(args.id, args.store), args.json)
            return 1
        except InsufficientPaymentError as e:
            print_error(insufficient_payment(e.gate_id, e.cost, e.payment), args.json)
            return 1
        except TransferFailedError as e:
            print_error(transfer_failed(e.gate_id, e.beneficiary, e.reason), args.json)
            return 1
        except PricingError as e:
            print_error(pricing_error(e.gate_id, e.reason), args.json)
            return 1
        except ValueError as e:
            print_error(
                invalid_argument("--payment", str(args.payment), str(e)), args.json
            )
            return 1

    if args.json:
        print(json.dumps(passage.to_dict(), indent=2))
    else:
        print(f"Passed gate {passage.gate_id}")
        print(f"  Paid: {passage.paid}")
        print(f"  Cost: {passage.cost}")
        print(f"  Next price: {passage.next_price}")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """Handle the balance command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        print(registry.balance_of(args.account))
    return 0


def cmd_passages(args: argparse.Namespace) -> int:
    """Handle the passages command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        passages = registry.list_passages(args.gate)

    if args.json:
        print(json.dumps([p.to_dict() for p in passages], indent=2))
        return 0

    if not passages:
        print("No passages found.")
        return 0

    for p in passages:
        payer = p.payer or "-"
        print(
            f"#{p.sequence}  gate={p.gate_id}  t={p.time}  payer={payer}  "
            f"paid={p.paid}  cost={p.cost}  next={p.next_price}"
        )
    return 0


def cmd_tick(args: argparse.Namespace) -> int:
    """Handle the tick command."""
    if args.blocks < 0:
        print_error(invalid_argument("--blocks", str(args.blocks), "must be >= 0"))
        return 1

    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        height = registry.clock.advance(args.blocks)
    print(height)
    return 0


def cmd_height(args: argparse.Namespace) -> int:
    """Handle the height command."""
    registry = _open_registry(args)
    if registry is None:
        return 1

    with registry:
        print(registry.clock())
    return 0


def main(argv: list[str] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="pricegate",
        description="Priced admission gates with bump-and-decay pricing",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new store")
    init_parser.add_argument("store", help="Store root directory to initialize")
    init_parser.add_argument(
        "--word-bits", type=int, default=256,
        help="Word width for amounts (0 = unbounded, default 256)",
    )
    init_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )
    init_parser.set_defaults(func=cmd_init)

    # gate-create command
    create_parser = subparsers.add_parser("gate-create", help="Create a gate")
    create_parser.add_argument("--store", required=True, help="Store root directory")
    create_parser.add_argument("--floor", type=int, required=True, help="Price floor")
    create_parser.add_argument(
        "--decay", type=int, required=True, help="Price decay per block"
    )
    create_parser.add_argument(
        "--num", type=int, required=True, help="Increase factor numerator"
    )
    create_parser.add_argument(
        "--den", type=int, required=True, help="Increase factor denominator"
    )
    create_parser.add_argument(
        "--beneficiary", required=True, help="Account receiving payments"
    )
    create_parser.add_argument("--json", action="store_true", help="Output as JSON")
    create_parser.set_defaults(func=cmd_gate_create)

    # gate-cost command
    cost_parser = subparsers.add_parser("gate-cost", help="Show a gate's current cost")
    cost_parser.add_argument("id", type=int, help="Gate ID")
    cost_parser.add_argument("--store", required=True, help="Store root directory")
    cost_parser.add_argument(
        "--at", type=int, help="Block height to price at (default: store height)"
    )
    cost_parser.add_argument("--json", action="store_true", help="Output as JSON")
    cost_parser.set_defaults(func=cmd_gate_cost)

    # gate-show command
    show_parser = subparsers.add_parser("gate-show", help="Show gate details")
    show_parser.add_argument("id", type=int, help="Gate ID")
    show_parser.add_argument("--store", required=True, help="Store root directory")
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")
    show_parser.set_defaults(func=cmd_gate_show)

    # gate-list command
    list_parser = subparsers.add_parser("gate-list", help="List all gates")
    list_parser.add_argument("--store", required=True, help="Store root directory")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.set_defaults(func=cmd_gate_list)

    # pass command
    pass_parser = subparsers.add_parser("pass", help="Pay to pass through a gate")
    pass_parser.add_argument("id", type=int, help="Gate ID")
    pass_parser.add_argument("--store", required=True, help="Store root directory")
    pass_parser.add_argument(
        "--payment", type=int, required=True, help="Attached payment"
    )
    pass_parser.add_argument("--payer", help="Payer label recorded on the passage")
    pass_parser.add_argument("--json", action="store_true", help="Output as JSON")
    pass_parser.set_defaults(func=cmd_pass)

    # balance command
    balance_parser = subparsers.add_parser(
        "balance", help="Show value forwarded to an account"
    )
    balance_parser.add_argument("account", help="Account name")
    balance_parser.add_argument("--store", required=True, help="Store root directory")
    balance_parser.set_defaults(func=cmd_balance)

    # passages command
    passages_parser = subparsers.add_parser("passages", help="List passages")
    passages_parser.add_argument("--store", required=True, help="Store root directory")
    passages_parser.add_argument("--gate", type=int, help="Filter by gate ID")
    passages_parser.add_argument("--json", action="store_true", help="Output as JSON")
    passages_parser.set_defaults(func=cmd_passages)

    # tick command
    tick_parser = subparsers.add_parser("tick", help="Advance the block height")
    tick_parser.add_argument("--store", required=True, help="Store root directory")
    tick_parser.add_argument(
        "--blocks", type=int, default=1, help="Blocks to advance (default 1)"
    )
    tick_parser.set_defaults(func=cmd_tick)

    # height command
    height_parser = subparsers.add_parser("height", help="Show the block height")
    height_parser.add_argument("--store", required=True, help="Store root directory")
    height_parser.set_defaults(func=cmd_height)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except lmdb.Error as e:
        print_error(internal_error(str(e)), getattr(args, "json", False))
        return 1


if __name__ == "__main__":
    sys.exit(main())
