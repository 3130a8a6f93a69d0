"""
Configuration Validator

Validates the raw worker configuration before the polling loop starts.
"""

from typing import Any

from bbox_worker.common.logging_setup import get_service_logger

logger = get_service_logger("config.validator")

MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 24 * 60 * 60 * 1000


class ConfigValidator:
    """Validates worker configuration"""

    def validate(self, config: dict[str, Any]) -> tuple[bool, list[str]]:
        """
        Validate configuration.

        Args:
            config: Configuration dictionary (as read from YAML)

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors: list[str] = []

        if not isinstance(config, dict):
            return False, ["Configuration root must be a mapping"]

        ship = config.get("ShipSettings")
        if not isinstance(ship, dict):
            errors.append("Missing required section: ShipSettings")
            ship = {}

        errors.extend(self._validate_ship_settings(ship))

        db_source = str(ship.get("DBsource", False)).strip().lower() in ("true", "1", "yes", "on")
        if db_source:
            errors.extend(self._validate_store_settings(config))
        else:
            errors.extend(self._validate_equipment_settings(config))

        is_valid = len(errors) == 0

        if not is_valid:
            logger.warning(
                f"Config validation failed: {len(errors)} errors",
                extra={"errors": errors},
            )
        else:
            logger.debug("Config validation passed")

        return is_valid, errors

    def _validate_ship_settings(self, ship: dict[str, Any]) -> list[str]:
        """Validate identity and interval settings"""
        errors = []

        for key in ("ClientID", "ShipID"):
            if not ship.get(key):
                errors.append(f"ShipSettings: Missing {key}")

        interval = ship.get("ReadingInterval")
        if interval is None:
            errors.append("ShipSettings: Missing ReadingInterval")
        else:
            try:
                interval_ms = int(interval)
            except (TypeError, ValueError):
                errors.append(f"ShipSettings: ReadingInterval is not a number: {interval!r}")
            else:
                if interval_ms < MIN_INTERVAL_MS:
                    errors.append(f"Reading interval too fast (minimum {MIN_INTERVAL_MS}ms)")
                if interval_ms > MAX_INTERVAL_MS:
                    errors.append("Reading interval too slow (maximum 24h)")

        return errors

    def _validate_store_settings(self, config: dict[str, Any]) -> list[str]:
        """Persisted mode needs a database location"""
        connection_strings = config.get("ConnectionStrings") or {}
        if not connection_strings.get("SQLite"):
            return ["ConnectionStrings: Missing SQLite (required when DBsource is true)"]
        return []

    def _validate_equipment_settings(self, config: dict[str, Any]) -> list[str]:
        """Validate the static catalog tree"""
        errors = []
        settings = config.get("EquipmentSettings")

        if not isinstance(settings, dict):
            return ["Missing required section: EquipmentSettings"]

        sources = settings.get("DataSources") or []
        equipment = settings.get("Equipamentos") or []
        variables = settings.get("Variaveis") or []

        if not sources:
            errors.append("EquipmentSettings: No DataSources configured")

        for i, source in enumerate(sources):
            errors.extend(self._validate_source(source, i))

        for i, equip in enumerate(equipment):
            name = equip.get("Name", f"Equipamentos[{i}]") if isinstance(equip, dict) else f"Equipamentos[{i}]"
            if not isinstance(equip, dict) or equip.get("Id") is None:
                errors.append(f"{name}: Missing Id")

        for i, variable in enumerate(variables):
            errors.extend(self._validate_variable(variable, i))

        return errors

    def _validate_source(self, source: Any, index: int) -> list[str]:
        """Validate a single data source"""
        if not isinstance(source, dict):
            return [f"DataSources[{index}]: not a mapping"]

        errors = []
        name = source.get("Name", f"DataSources[{index}]")

        if source.get("Id") is None:
            errors.append(f"{name}: Missing Id")

        if not source.get("IPAddress"):
            errors.append(f"{name}: Missing IPAddress")

        try:
            port = int(source.get("Port", 0))
        except (TypeError, ValueError):
            port = 0
        if port < 1 or port > 65535:
            errors.append(f"{name}: Invalid port number")

        return errors

    def _validate_variable(self, variable: Any, index: int) -> list[str]:
        """Validate a single variable"""
        if not isinstance(variable, dict):
            return [f"Variaveis[{index}]: not a mapping"]

        errors = []
        name = variable.get("Name", f"Variaveis[{index}]")

        if variable.get("Id") is None:
            errors.append(f"{name}: Missing Id")

        try:
            address = int(variable.get("StartAddress"))
        except (TypeError, ValueError):
            errors.append(f"{name}: Missing or invalid StartAddress")
        else:
            if not 0 <= address <= 0xFFFF:
                errors.append(f"{name}: StartAddress out of range")

        try:
            count = int(variable.get("NumRegisters"))
        except (TypeError, ValueError):
            errors.append(f"{name}: Missing or invalid NumRegisters")
        else:
            if count < 1 or count > 125:
                errors.append(f"{name}: NumRegisters must be 1-125")
            elif count % 2:
                # Still polled; the unpaired register is reported on every read
                logger.warning(f"{name}: odd NumRegisters ({count}), last register is ignored")

        return errors
