"""
Configuration loader for the dual-mode authorization comparator

Reads the kill switch, table names and worker sizing from environment
variables, and loads the legacy RBAC role/plan permission matrix from YAML
validated against a JSON schema.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


AWS_REGION = os.getenv("AWS_REGION", "ap-northeast-2")

MISMATCH_LOG_TABLE = os.getenv("MISMATCH_LOG_TABLE", "authz_mismatch_log")
MISMATCH_ALERT_TABLE = os.getenv("MISMATCH_ALERT_TABLE", "authz_mismatch_alerts")
TENANT_MEMBERSHIP_TABLE = os.getenv("TENANT_MEMBERSHIP_TABLE", "tenant_memberships")

DEFAULT_STATS_LIMIT = 20
DEFAULT_MAX_WORKERS = 4

ROLE_PERMISSIONS_FILE = os.getenv(
    "ROLE_PERMISSIONS_FILE",
    os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
        "config",
        "role_permissions.yaml",
    ),
)
ROLE_PERMISSIONS_SCHEMA_FILE = os.getenv(
    "ROLE_PERMISSIONS_SCHEMA_FILE",
    os.path.join(os.path.dirname(__file__), "role_permissions.schema.json"),
)


def _read_enabled_flag() -> bool:
    """
    Return the DUAL_MODE_COMPARISON_ENABLED kill switch state.

    Default: False (comparator is a no-op). Only lowercase "true" enables it.
    Read on every Settings.reload() rather than once at import.
    """
    return os.getenv("DUAL_MODE_COMPARISON_ENABLED", "false") == "true"


def _read_positive_int(name: str, default: int) -> int:
    """Read a positive integer environment variable."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


class Settings:
    """
    Runtime configuration for the comparator.

    The kill switch is re-read by :meth:`reload`; pass
    :meth:`is_comparison_enabled` (the bound method) to the comparator to
    make it follow reloads without reconstruction.
    """

    def __init__(self, region_name: Optional[str] = None):
        """
        Initialize Settings from the environment.

        Args:
            region_name: AWS region for DynamoDB/CloudWatch (default: AWS_REGION env)

        Raises:
            ConfigurationError: If a numeric setting is malformed
        """
        self.region_name = region_name or os.getenv("AWS_REGION", AWS_REGION)
        self.role_permissions: Dict[str, Any] = {}
        self.role_permissions_schema: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read environment-driven settings (kill switch, tables, sizing)."""
        self.comparison_enabled = _read_enabled_flag()
        self.mismatch_log_table = os.getenv("MISMATCH_LOG_TABLE", MISMATCH_LOG_TABLE)
        self.mismatch_alert_table = os.getenv("MISMATCH_ALERT_TABLE", MISMATCH_ALERT_TABLE)
        self.tenant_membership_table = os.getenv(
            "TENANT_MEMBERSHIP_TABLE", TENANT_MEMBERSHIP_TABLE
        )
        self.stats_limit = _read_positive_int("COMPARISON_STATS_LIMIT", DEFAULT_STATS_LIMIT)
        self.max_workers = _read_positive_int("COMPARISON_MAX_WORKERS", DEFAULT_MAX_WORKERS)
        logger.debug(f"Settings loaded: comparison_enabled={self.comparison_enabled}")

    def is_comparison_enabled(self) -> bool:
        """Check if the dual-mode comparator kill switch is on."""
        return self.comparison_enabled

    def load_role_permissions(
        self,
        config_path: str = ROLE_PERMISSIONS_FILE,
        schema_path: str = ROLE_PERMISSIONS_SCHEMA_FILE,
    ) -> Dict[str, Any]:
        """
        Load the legacy role/plan permission matrix and validate it against schema.

        Args:
            config_path: Path to role_permissions.yaml
            schema_path: Path to role_permissions.schema.json

        Returns:
            Parsed configuration dict with "roles", "plans" and "default_plan"

        Raises:
            FileNotFoundError: If config files not found
            ValueError: If the YAML/JSON is malformed or fails schema validation
        """
        try:
            with open(schema_path, "r", encoding="utf-8") as f:
                self.role_permissions_schema = json.load(f)
                logger.debug(f"Loaded role permissions schema from {schema_path}")
        except FileNotFoundError:
            logger.error(f"Role permissions schema file not found: {schema_path}")
            raise
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in role permissions schema: {e}")
            raise ValueError(f"Invalid JSON in {schema_path}: {e}") from e

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except FileNotFoundError:
            logger.error(f"Role permissions file not found: {config_path}")
            raise
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in role permissions: {e}")
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

        if not config:
            raise ValueError(f"Empty role permissions configuration: {config_path}")

        try:
            jsonschema.validate(instance=config, schema=self.role_permissions_schema)
            logger.info("Role permissions validated against schema")
        except jsonschema.ValidationError as e:
            logger.error(f"Role permissions failed schema validation: {e.message}")
            raise ValueError(f"Role permissions validation failed: {e.message}") from e
        except jsonschema.SchemaError as e:
            logger.error(f"Role permissions schema is invalid: {e.message}")
            raise ValueError(f"Role permissions schema is invalid: {e.message}") from e

        default_plan = config.get("default_plan")
        if default_plan is not None and default_plan not in config["plans"]:
            raise ValueError(f"default_plan '{default_plan}' is not a configured plan")

        self.role_permissions = config
        logger.info(
            f"Loaded {len(config['roles'])} roles and {len(config['plans'])} plans "
            f"from {config_path}"
        )
        return config
