#!/usr/bin/env python3
"""
BBox Modbus Worker - Main Entry Point

Loads the configuration and starts the acquisition loop.

Usage:
    bbox-worker                       # Use default config.yaml
    bbox-worker --config my.yaml      # Use custom config file
    bbox-worker --dry-run             # Print config and exit

The worker will:
1. Load configuration from YAML file
2. Resolve the device catalog (static config or SQLite store)
3. Poll every variable over Modbus TCP each interval
4. Append decoded values to vars/YYYY/MM/DDD/... CSV files
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from bbox_worker.common.config import WorkerConfig, load_worker_config, read_config_file
from bbox_worker.common.exceptions import WorkerError
from bbox_worker.common.logging_setup import get_service_logger, set_log_level
from bbox_worker.services.acquisition.service import AcquisitionService
from bbox_worker.services.config.validator import ConfigValidator

logger = get_service_logger("main")


def find_config_path() -> str:
    """Find configuration file"""
    env_path = os.environ.get("BBOX_CONFIG")
    if env_path:
        return env_path

    possible_paths = [
        Path("/etc/bbox/config.yaml"),
        Path("config.yaml"),
    ]

    for path in possible_paths:
        if path.exists():
            return str(path)

    return str(possible_paths[-1])


def load_config(config_path: str) -> WorkerConfig:
    """
    Load and validate configuration.

    Exits with status 1 on any configuration error.
    """
    try:
        data = read_config_file(config_path)
    except WorkerError as e:
        logger.error(str(e))
        sys.exit(1)

    is_valid, errors = ConfigValidator().validate(data)
    if not is_valid:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        sys.exit(1)

    try:
        config = load_worker_config(data)
    except WorkerError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Loaded configuration from {config_path}")
    return config


def print_config_summary(config: WorkerConfig) -> None:
    """Print a summary of the configuration."""
    ship = config.ship
    print("\n" + "=" * 60)
    print("  BBOX MODBUS WORKER")
    print("=" * 60)

    print(f"\n  Client: {ship.client_id or 'Unknown'}")
    print(f"  Ship: {ship.ship_id or 'Unknown'}")
    print(f"  Interval: {ship.reading_interval_ms}ms")
    print(f"  Output: {Path(ship.output_directory).resolve() / 'vars'}")

    if ship.db_source:
        print(f"\n  Catalog: SQLite ({config.sqlite_path})")
    else:
        settings = config.equipment_settings
        print("\n  Catalog: static configuration")
        print(f"    - Data sources: {len(settings.get('DataSources') or [])}")
        print(f"    - Equipment: {len(settings.get('Equipamentos') or [])}")
        print(f"    - Variables: {len(settings.get('Variaveis') or [])}")

    print(f"\n  Modbus: unit {config.modbus.unit_id}, timeout {config.modbus.timeout_s}s")
    print("=" * 60 + "\n")


async def main_async(config: WorkerConfig) -> None:
    """Build and run the acquisition service."""
    service = AcquisitionService(config)

    try:
        await service.start()
    except asyncio.CancelledError:
        logger.info("Worker cancelled")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        raise


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="BBox Modbus acquisition worker")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: $BBOX_CONFIG or config.yaml)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print configuration and exit without polling",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    args = parser.parse_args()

    if args.verbose:
        set_log_level("DEBUG")

    config = load_config(args.config or find_config_path())

    print_config_summary(config)

    if args.dry_run:
        print("Dry run mode - exiting without starting worker")
        sys.exit(0)

    logger.info("Starting worker...")

    try:
        asyncio.run(main_async(config))
    except WorkerError as e:
        # Startup failure (catalog/store), nothing was polled
        logger.error(f"Startup failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped by user")


if __name__ == "__main__":
    main()
