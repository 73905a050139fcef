#!/usr/bin/env python3
# cli.py
"""Command line access to the zimmet store.

    python -m cli devices
    python -m cli assign <device_id> <personnel_id> --notes "..."
    python -m cli return <assignment_id>
    python -m cli delete-device <device_id> [--yes]
    python -m cli export devices --format xlsx --out rapor.xlsx
    python -m cli import cihazlar.xlsx
"""
import argparse
import json
import logging
from pathlib import Path
from typing import Callable, Optional

import config
import crud
import export_utils
import inventory_crud
from csv_utils import upload_to_rows
from db import Base, SessionLocal, engine
from errors import InventoryError
from state import AppState

logger = logging.getLogger("app.cli")


def prompt_confirmation(message: str) -> bool:
    answer = input(f"{message} [e/H] ").strip().lower()
    return answer in ("e", "evet", "y", "yes")


def _confirm(args) -> Callable[[str], bool]:
    if args.yes:
        return lambda _message: True
    return prompt_confirmation


def cmd_devices(store: AppState, db, args) -> int:
    for d in crud.list_devices_filtered(
        db, q=args.q, status=args.status, category=None, sort="created_at", order="desc", limit=500, offset=0
    ):
        print(f"{d.id}\t{d.brand}\t{d.category}\t{d.serial_number}\t{d.status}\t{d.assigned_to or '-'}")
    return 0


def cmd_personnel(store: AppState, db, args) -> int:
    for p in crud.list_personnel(db, q=args.q):
        print(f"{p.id}\t{p.name}\t{p.department}\t{len(p.assigned_devices)}")
    return 0


def cmd_assignments(store: AppState, db, args) -> int:
    status = "active" if args.active else None
    for a in crud.list_assignments(db, status=status):
        returned = a.returned_date.isoformat() if a.returned_date else "-"
        print(f"{a.id}\t{a.device_id}\t{a.personnel_id}\t{a.status}\t{a.assigned_date.isoformat()}\t{returned}")
    return 0


def cmd_assign(store: AppState, db, args) -> int:
    a = store.assign_device(db, args.device_id, args.personnel_id, args.notes)
    print(a.id)
    return 0


def cmd_return(store: AppState, db, args) -> int:
    a = store.return_device(db, args.assignment_id)
    print(f"{a.id}\t{a.status}")
    return 0


def cmd_delete_device(store: AppState, db, args) -> int:
    if not store.delete_device(db, args.device_id, _confirm(args)):
        print("cancelled")
        return 1
    print("deleted")
    return 0


def cmd_delete_personnel(store: AppState, db, args) -> int:
    if not store.delete_personnel(db, args.personnel_id, _confirm(args)):
        print("cancelled")
        return 1
    print("deleted")
    return 0


def cmd_export(store: AppState, db, args) -> int:
    store.refresh(db)
    out = Path(args.out) if args.out else None

    if args.what == "devices":
        prefix = "cihaz_zimmet_raporu" if args.format == "xlsx" else "cihaz_zimmet_verileri"
        if args.format == "xlsx":
            payload = export_utils.workbook_bytes(
                export_utils.devices_workbook(store.devices, store.personnel, store.assignments)
            )
        else:
            payload = json.dumps(
                export_utils.devices_json(store.devices, store.personnel, store.assignments),
                ensure_ascii=False,
                indent=2,
            ).encode("utf-8")
    else:
        prefix = "envanter_raporu" if args.format == "xlsx" else "envanter_verileri"
        if args.format == "xlsx":
            payload = export_utils.workbook_bytes(
                export_utils.inventory_workbook(store.inventory_items, store.maintenance_records)
            )
        else:
            payload = json.dumps(
                export_utils.inventory_json(store.inventory_items, store.maintenance_records),
                ensure_ascii=False,
                indent=2,
            ).encode("utf-8")

    out = out or Path(export_utils.export_filename(prefix, args.format))
    out.write_bytes(payload)
    logger.info("export written path=%s bytes=%s", out, len(payload))
    print(out)
    return 0


def cmd_import(store: AppState, db, args) -> int:
    path = Path(args.file)
    if not path.exists():
        raise FileNotFoundError(path)

    rows, err = upload_to_rows(path.name, path.read_bytes())
    if err:
        print(err)
        return 1

    result = store.run(db, "import devices", crud.bulk_import_devices, rows)
    logger.info(
        "import created=%s skipped=%s assigned=%s errors=%s",
        result["created"],
        result["skipped"],
        result["assigned"],
        len(result["errors"]),
    )
    for e in result["errors"]:
        print(e)
    return 0


def cmd_check_orders(store: AppState, db, args) -> int:
    for o in store.run(db, "check auto orders", inventory_crud.check_auto_order_triggers):
        print(f"{o.id}\t{o.category}\t{o.supplier}\t{o.quantity}\t{export_utils.format_try(o.estimated_cost)}")
    return 0


def cmd_alerts(store: AppState, db, args) -> int:
    store.refresh(db)
    for alert in store.alerts():
        print(f"{alert.severity}\t{alert.alert_type}\t{alert.message}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="cli", description="Zimmet and inventory administration")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("devices", help="List devices")
    p.add_argument("--q", help="Search brand/serial/category/holder")
    p.add_argument("--status", choices=["available", "assigned", "maintenance", "retired"])
    p.set_defaults(func=cmd_devices)

    p = sub.add_parser("personnel", help="List personnel")
    p.add_argument("--q", help="Search name/email/title")
    p.set_defaults(func=cmd_personnel)

    p = sub.add_parser("assignments", help="List assignments")
    p.add_argument("--active", action="store_true", help="Only active assignments")
    p.set_defaults(func=cmd_assignments)

    p = sub.add_parser("assign", help="Assign a device to a person")
    p.add_argument("device_id")
    p.add_argument("personnel_id")
    p.add_argument("--notes")
    p.set_defaults(func=cmd_assign)

    p = sub.add_parser("return", help="Return an assigned device")
    p.add_argument("assignment_id")
    p.set_defaults(func=cmd_return)

    p = sub.add_parser("delete-device", help="Delete a device")
    p.add_argument("device_id")
    p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_delete_device)

    p = sub.add_parser("delete-personnel", help="Delete a personnel record")
    p.add_argument("personnel_id")
    p.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_delete_personnel)

    p = sub.add_parser("export", help="Write an xlsx or JSON export")
    p.add_argument("what", choices=["devices", "inventory"])
    p.add_argument("--format", choices=["xlsx", "json"], default="xlsx")
    p.add_argument("--out", help="Output path (default: dated file name in the current directory)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Import devices from CSV or xlsx")
    p.add_argument("file")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("check-orders", help="Open purchase orders for low stock")
    p.set_defaults(func=cmd_check_orders)

    p = sub.add_parser("alerts", help="Show active stock and warranty alerts")
    p.set_defaults(func=cmd_alerts)

    return ap


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    Base.metadata.create_all(bind=engine)
    store = AppState()
    db = SessionLocal()
    try:
        return args.func(store, db, args)
    except InventoryError as e:
        print(f"error: {e.message}")
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
