"""
Operator command line for the inventory ledger.

Usage:
    inventory-ledger [--config PATH] [--database-url URL] <command> [options]

Examples:
    # Create tables and the default facility with its Main/Line locations
    inventory-ledger init-db

    # Load components from a YAML file (``components: [{component_number, description, ...}]``)
    inventory-ledger seed --components components.yaml

    # Receive, move and use stock (locations by name; defaults are Main/Line)
    inventory-ledger add 217520 50 --notes "initial load"
    inventory-ledger transfer 217520 20
    inventory-ledger consume 217520 5

    # Reports
    inventory-ledger stats --json
    inventory-ledger low-stock
    inventory-ledger activity --limit 20
    inventory-ledger verify

Exit codes: 0 on success, 1 on a ledger error (the error code is printed),
2 on usage errors, 3 when replay verification finds a mismatch.
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal
from pathlib import Path

from inventory_ledger.config import LedgerSettings, load_settings, load_yaml_file
from inventory_ledger.exceptions import (
    ConfigurationError,
    InventoryLedgerError,
    UnknownComponentError,
)
from inventory_ledger.ledger import InventoryLedger
from inventory_ledger.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("cli")

EXIT_OK = 0
EXIT_LEDGER_ERROR = 1
EXIT_REPLAY_MISMATCH = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inventory-ledger",
        description="Inventory ledger: stock mutations, reports and log verification.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file.")
    parser.add_argument("--database-url", default=None, help="Overrides database.url.")
    parser.add_argument("--actor-id", type=int, default=None, help="Acting user id.")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables and the default location layout.")

    seed = sub.add_parser("seed", help="Load components from a YAML file.")
    seed.add_argument("--components", type=Path, default=None, help="YAML component list.")

    for name, default_location, help_text in (
        ("add", "main", "Receive stock into a location."),
        ("remove", "main", "Take stock out of a location."),
        ("consume", "line", "Record production usage."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("component", help="Component number.")
        cmd.add_argument("quantity", type=int)
        cmd.add_argument(
            "--location",
            default=None,
            help=f"Location name (default: the {default_location} location).",
        )
        cmd.add_argument("--notes", default=None)
        cmd.set_defaults(default_location=default_location)

    transfer = sub.add_parser("transfer", help="Move stock between locations.")
    transfer.add_argument("component", help="Component number.")
    transfer.add_argument("quantity", type=int)
    transfer.add_argument("--from", dest="from_location", default=None,
                          help="Source location name (default: main).")
    transfer.add_argument("--to", dest="to_location", default=None,
                          help="Destination location name (default: line).")
    transfer.add_argument("--notes", default=None)

    stats = sub.add_parser("stats", help="Dashboard totals.")
    stats.add_argument("--json", action="store_true", help="Print JSON.")

    sub.add_parser("low-stock", help="Rows at or below their threshold.")

    activity = sub.add_parser("activity", help="Most recent transactions.")
    activity.add_argument("--limit", type=int, default=None)
    activity.add_argument("--consumed", action="store_true", help="Only consumption.")

    sub.add_parser("verify", help="Replay the transaction log against the stored snapshot.")
    return parser


def _location_name(ledger: InventoryLedger, name: str | None, default: str) -> str:
    if name:
        return name
    settings = ledger.settings
    return settings.main_location_name if default == "main" else settings.line_location_name


def _cmd_init_db(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    main, line = ledger.initialize()
    print(f"Tables ready. Main location: {main.name} (id={main.id}), "
          f"line location: {line.name} (id={line.id})")
    return EXIT_OK


def _cmd_seed(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    ledger.ensure_default_layout()
    if args.components is None:
        print("Default layout ready. No component file given.")
        return EXIT_OK

    data = load_yaml_file(args.components)
    entries = data.get("components") or []
    if not isinstance(entries, list):
        raise ConfigurationError("components", "must be a list")

    created = 0
    skipped = 0
    for entry in entries:
        number = str(entry["component_number"])
        try:
            ledger.get_component_by_number(number)
            skipped += 1
            continue
        except UnknownComponentError:
            pass
        unit_price = entry.get("unit_price")
        ledger.create_component(
            number,
            entry.get("description") or number,
            category=entry.get("category"),
            supplier=entry.get("supplier"),
            unit_price=Decimal(str(unit_price)) if unit_price is not None else None,
            min_stock_level=entry.get("min_stock_level"),
            max_stock_level=entry.get("max_stock_level"),
        )
        created += 1
    print(f"Components created: {created}, already present: {skipped}")
    return EXIT_OK


def _cmd_single_location(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    component = ledger.get_component_by_number(args.component)
    location = ledger.get_location_by_name(
        _location_name(ledger, args.location, args.default_location)
    )
    operation = {
        "add": ledger.add_stock,
        "remove": ledger.remove_stock,
        "consume": ledger.consume,
    }[args.command]
    record = operation(component.id, location.id, args.quantity, args.notes, args.actor_id)
    quantity = ledger.get_quantity(component.id, location.id)
    print(f"Transaction {record.id}: {record.transaction_type.value} {record.quantity} x "
          f"{component.component_number} at {location.name} (now {quantity})")
    return EXIT_OK


def _cmd_transfer(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    component = ledger.get_component_by_number(args.component)
    source = ledger.get_location_by_name(_location_name(ledger, args.from_location, "main"))
    destination = ledger.get_location_by_name(_location_name(ledger, args.to_location, "line"))
    record = ledger.transfer(
        component.id, source.id, destination.id, args.quantity, args.notes, args.actor_id
    )
    print(f"Transaction {record.id}: moved {record.quantity} x {component.component_number} "
          f"from {source.name} to {destination.name}")
    return EXIT_OK


def _cmd_stats(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    stats = ledger.dashboard_stats()
    if args.json:
        print(json.dumps(stats.to_dict(), sort_keys=True))
    else:
        print(f"Total components:     {stats.total_components}")
        print(f"Main inventory total: {stats.main_inventory_total}")
        print(f"Line inventory total: {stats.line_inventory_total}")
        print(f"Low stock alerts:     {stats.low_stock_alerts}")
    return EXIT_OK


def _cmd_low_stock(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    rows = ledger.low_stock_items()
    if not rows:
        print("No low stock items.")
        return EXIT_OK
    for row in rows:
        print(f"{row.component_number:<20} {row.location_name:<20} "
              f"qty={row.quantity:<6} min={row.min_stock_level}")
    return EXIT_OK


def _cmd_activity(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    if args.consumed:
        items = ledger.consumed_transactions(args.limit)
    else:
        items = ledger.recent_transactions(args.limit)
    for item in items:
        route = " -> ".join(
            name for name in (item.from_location_name, item.to_location_name) if name
        )
        print(f"#{item.id:<6} {item.created_at.isoformat()} {item.transaction_type.value:<8} "
              f"{item.quantity:>6} x {item.component_number:<16} {route}"
              + (f"  ({item.notes})" if item.notes else ""))
    return EXIT_OK


def _cmd_verify(ledger: InventoryLedger, args: argparse.Namespace) -> int:
    result = ledger.verify()
    print(f"Transactions replayed: {result.transaction_count}")
    print(f"Stored snapshot hash:   {result.stored_hash}")
    print(f"Replayed snapshot hash: {result.replayed_hash}")
    if result.is_consistent:
        print("OK: the transaction log reproduces the inventory snapshot.")
        return EXIT_OK
    for mismatch in result.mismatches:
        print(f"MISMATCH component={mismatch.component_id} location={mismatch.location_id} "
              f"stored={mismatch.stored_quantity} replayed={mismatch.replayed_quantity}")
    for component_id, location_id in result.negative_keys:
        print(f"NEGATIVE component={component_id} location={location_id}")
    return EXIT_REPLAY_MISMATCH


_COMMANDS = {
    "init-db": _cmd_init_db,
    "seed": _cmd_seed,
    "add": _cmd_single_location,
    "remove": _cmd_single_location,
    "consume": _cmd_single_location,
    "transfer": _cmd_transfer,
    "stats": _cmd_stats,
    "low-stock": _cmd_low_stock,
    "activity": _cmd_activity,
    "verify": _cmd_verify,
}


def _settings_from_args(args: argparse.Namespace) -> LedgerSettings:
    settings = load_settings(args.config)
    if args.database_url:
        settings = settings.with_database_url(args.database_url)
    return settings


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ConfigurationError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return EXIT_LEDGER_ERROR
    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e.filename}", file=sys.stderr)
        return EXIT_LEDGER_ERROR

    configure_logging(level=settings.log_level)

    with LogContext.bind(actor_id=args.actor_id, operation=f"cli.{args.command}"):
        ledger = InventoryLedger(settings)
        try:
            with ledger:
                return _COMMANDS[args.command](ledger, args)
        except InventoryLedgerError as e:
            logger.info("cli_command_failed", extra={"error_code": e.code})
            print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
            return EXIT_LEDGER_ERROR
        except FileNotFoundError as e:
            print(f"ERROR: File not found: {e.filename}", file=sys.stderr)
            return EXIT_LEDGER_ERROR


if __name__ == "__main__":
    sys.exit(main())
