#!/usr/bin/env python3
"""
Seed CLI - Populate the SQLite Catalog

Command-line tool for creating and filling the persisted catalog used when
ShipSettings.DBsource is true.

Usage:
    # Insert the sample SCR_Automation / UREA / Temp catalog
    bbox-worker-seed --db bbox.db sample

    # Copy the static EquipmentSettings of a config file into the store
    bbox-worker-seed --config config.yaml import

    # Print the stored catalog
    bbox-worker-seed --db bbox.db list

Output is JSON for easy parsing.
"""

import argparse
import json
import sys
import traceback
from dataclasses import asdict
from typing import Any

from bbox_worker.common.config import (
    load_worker_config,
    parse_data_source,
    parse_equipment,
    parse_variable,
    read_config_file,
)
from bbox_worker.storage.catalog_db import CatalogDatabase

SAMPLE_CATALOG = {
    "DataSources": [
        {"Id": 1, "Name": "SCR_Automation", "IPAddress": "127.0.0.1", "Port": 502},
    ],
    "Equipamentos": [
        {"Id": 1, "Name": "UREA", "BoemName": "UREA"},
    ],
    "Variaveis": [
        {"Id": 1, "Name": "Temp", "BoemName": "temp", "StartAddress": 10, "NumRegisters": 2},
    ],
}


def import_static_catalog(db: CatalogDatabase, equipment_settings: dict[str, Any]) -> dict:
    """
    Insert a static EquipmentSettings tree into the store.

    Static declarations are flat (every equipment polled under every source,
    every variable under every equipment), so the rows are expanded the same
    way to keep the polled topology identical after switching modes.

    Returns:
        Counts of inserted rows
    """
    sources = [parse_data_source(r, i) for i, r in enumerate(equipment_settings.get("DataSources") or [])]
    equipment = [parse_equipment(r, 0, i) for i, r in enumerate(equipment_settings.get("Equipamentos") or [])]
    variables = [parse_variable(r, 0, i) for i, r in enumerate(equipment_settings.get("Variaveis") or [])]

    counts = {"data_sources": 0, "equipments": 0, "variables": 0}

    for source in sources:
        source_id = db.insert_data_source(source.name, source.ip_address, source.port)
        counts["data_sources"] += 1

        for equip in equipment:
            equipment_id = db.insert_equipment(equip.name, equip.boem_name, source_id)
            counts["equipments"] += 1

            for variable in variables:
                db.insert_variable(
                    variable.name,
                    variable.boem_name,
                    variable.start_address,
                    variable.num_registers,
                    equipment_id,
                )
                counts["variables"] += 1

    return counts


def dump_catalog(db: CatalogDatabase) -> list[dict]:
    """Return the stored hierarchy as nested dicts."""
    catalog = []
    for source in db.get_data_sources():
        equipment_list = []
        for equip in db.get_equipment(source.id):
            item = asdict(equip)
            item["variables"] = [asdict(v) for v in db.get_variables(equip.id)]
            equipment_list.append(item)
        item = asdict(source)
        item["equipment"] = equipment_list
        catalog.append(item)
    return catalog


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create and populate the SQLite device catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", help="SQLite database path (overrides the config file)")
    parser.add_argument("--config", "-c", help="Worker configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    subparsers.add_parser("sample", help="Insert the sample catalog")
    subparsers.add_parser("import", help="Import EquipmentSettings from --config")
    subparsers.add_parser("list", help="Print the stored catalog")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = None
    if args.config:
        config = load_worker_config(read_config_file(args.config))

    db_path = args.db or (config.sqlite_path if config else None)
    if not db_path:
        print(json.dumps({"success": False, "error": "No database given (use --db or --config)"}))
        return 1

    db = CatalogDatabase(db_path)
    db.initialize()

    if args.command == "sample":
        counts = import_static_catalog(db, SAMPLE_CATALOG)
        print(json.dumps({"success": True, "inserted": counts}))

    elif args.command == "import":
        if config is None:
            print(json.dumps({"success": False, "error": "import requires --config"}))
            return 1
        counts = import_static_catalog(db, config.equipment_settings)
        print(json.dumps({"success": True, "inserted": counts}))

    elif args.command == "list":
        print(json.dumps({"success": True, "catalog": dump_catalog(db)}))

    return 0


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except Exception as e:
        print(json.dumps({
            "success": False,
            "error": str(e),
            "traceback": traceback.format_exc(),
        }))
        sys.exit(1)


if __name__ == "__main__":
    run()
