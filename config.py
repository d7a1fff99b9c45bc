#!/usr/bin/env python3
"""
Matrix Harness Configuration Management

This module provides configuration management for the transactional
delete-verification harness:
- Emulator container lifecycle settings
- Database/instance/table coordinates
- Matrix variant and scenario runner settings
- Logging and bug reporting options
"""

import os
import yaml
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict

# Logging setup
logger = logging.getLogger(__name__)

EMULATOR_HOST_ENV = "SPANNER_EMULATOR_HOST"
MULTIPLEXED_RW_ENV = "GOOGLE_CLOUD_SPANNER_MULTIPLEXED_SESSIONS_FOR_RW"
DISABLE_METRICS_ENV = "SPANNER_DISABLE_BUILTIN_METRICS"


@dataclass
class EmulatorConfig:
    """Local Cloud Spanner emulator container settings."""
    image: str = "gcr.io/cloud-spanner-emulator/emulator:1.5.50"
    container_name: str = "spanner-emu-test"
    host: str = "localhost"
    grpc_port: int = 9010
    rest_port: int = 9020
    manage_container: bool = True
    startup_delay: float = 2.0
    readiness_timeout: float = 30.0
    docker_binary: str = "docker"

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.grpc_port}"

    def validate(self) -> List[str]:
        """Validate emulator configuration."""
        errors = []

        if not self.host:
            errors.append("Emulator host is required")
        if self.grpc_port < 1 or self.grpc_port > 65535:
            errors.append("Invalid emulator gRPC port")
        if self.rest_port < 1 or self.rest_port > 65535:
            errors.append("Invalid emulator REST port")
        if self.manage_container and not self.image:
            errors.append("Emulator image is required when the container is managed")
        if self.manage_container and not self.container_name:
            errors.append("Container name is required when the container is managed")
        if self.startup_delay < 0:
            errors.append("Startup delay must be non-negative")
        if self.readiness_timeout <= 0:
            errors.append("Readiness timeout must be positive")

        return errors


@dataclass
class DatabaseConfig:
    """Spanner resource coordinates used by every scenario."""
    project_id: str = "test-project"
    instance_id: str = "test-instance"
    database_id: str = "test-database"
    instance_config: str = "emulator-config"
    table: str = "T"
    operation_timeout: float = 120.0

    @property
    def instance_path(self) -> str:
        return f"projects/{self.project_id}/instances/{self.instance_id}"

    @property
    def database_path(self) -> str:
        return f"{self.instance_path}/databases/{self.database_id}"

    @property
    def instance_config_path(self) -> str:
        return f"projects/{self.project_id}/instanceConfigs/{self.instance_config}"

    def validate(self) -> List[str]:
        """Validate database configuration."""
        errors = []

        if not self.project_id:
            errors.append("Project id is required")
        if not self.instance_id:
            errors.append("Instance id is required")
        if not self.database_id:
            errors.append("Database id is required")
        if not self.table or not self.table.isidentifier():
            errors.append("Table name must be a plain identifier")
        if self.operation_timeout <= 0:
            errors.append("Operation timeout must be positive")

        return errors


@dataclass
class RunnerConfig:
    """Matrix orchestration settings."""
    variant: str = "delete-begin"
    runner_timeout: Optional[float] = None
    python_executable: Optional[str] = None
    run_dir: str = "runs"
    disable_builtin_metrics: bool = True

    def validate(self) -> List[str]:
        """Validate harness configuration."""
        # Imported here so config stays importable without the matrix registry
        from core.matrix import VARIANT_REGISTRY

        errors = []

        if self.variant not in VARIANT_REGISTRY:
            errors.append(
                f"Unknown variant '{self.variant}'; expected one of: {', '.join(VARIANT_REGISTRY)}"
            )
        if self.runner_timeout is not None and self.runner_timeout <= 0:
            errors.append("Runner timeout must be positive when set")
        if not self.run_dir:
            errors.append("Run directory is required")

        return errors


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    log_file: str = "logs/harness.log"

    def validate(self) -> List[str]:
        """Validate logging configuration."""
        errors = []

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_levels:
            errors.append(f"Log level must be one of: {', '.join(valid_levels)}")

        return errors


@dataclass
class BugReportingConfig:
    """Bug reproduction output settings."""
    enabled: bool = True
    reproduction_dir: str = "bug_reproductions"

    def validate(self) -> List[str]:
        errors = []
        if self.enabled and not self.reproduction_dir:
            errors.append("Reproduction directory is required when bug reporting is enabled")
        return errors


@dataclass
class HarnessSettings:
    """Complete harness configuration."""
    emulator: EmulatorConfig = field(default_factory=EmulatorConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    harness: RunnerConfig = field(default_factory=RunnerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    bug_reporting: BugReportingConfig = field(default_factory=BugReportingConfig)
    debug: bool = False

    def validate(self) -> List[str]:
        """Validate complete configuration."""
        errors = []

        errors.extend(self.emulator.validate())
        errors.extend(self.database.validate())
        errors.extend(self.harness.validate())
        errors.extend(self.logging.validate())
        errors.extend(self.bug_reporting.validate())

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "HarnessSettings":
        """Build settings from a loaded configuration dictionary, ignoring unknown keys."""
        settings = cls()
        for key, value in config.items():
            if not hasattr(settings, key):
                logger.warning(f"Ignoring unknown configuration section '{key}'")
                continue
            section = getattr(settings, key)
            if isinstance(value, dict) and hasattr(section, '__dataclass_fields__'):
                for nested_key, nested_value in value.items():
                    if hasattr(section, nested_key):
                        setattr(section, nested_key, nested_value)
                    else:
                        logger.warning(f"Ignoring unknown configuration key '{key}.{nested_key}'")
            else:
                setattr(settings, key, value)
        return settings


def load_config(config_path: Optional[str]) -> Dict[str, Any]:
    """
    Load configuration from YAML file with harness defaults.

    Args:
        config_path: Path to configuration file, or None to use defaults only

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        return _apply_defaults({})

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a mapping")

        config_data = _apply_defaults(config_data)

        logger.info(f"Configuration loaded from '{config_path}'")
        return config_data

    except FileNotFoundError:
        logger.error(f"Configuration file not found: {config_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in configuration file: {e}")
        raise


def _apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in every section with the dataclass defaults."""
    defaults = HarnessSettings().to_dict()
    for section, values in defaults.items():
        if not isinstance(values, dict):
            config.setdefault(section, values)
            continue
        if config.get(section) is None:
            config[section] = {}
        for key, value in values.items():
            config[section].setdefault(key, value)
    return config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate complete configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if valid, False otherwise
    """
    try:
        errors = HarnessSettings.from_dict(config).validate()
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Configuration validation error: {e}")
        return False

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return False

    logger.info("✅ Configuration validation completed successfully")
    return True


def create_default_config(config_path: str) -> None:
    """
    Create a default configuration file.

    Args:
        config_path: Path where to create the configuration file
    """
    config_dict = HarnessSettings().to_dict()

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)

    logger.info(f"Default configuration created at: {config_path}")


class HarnessConfig:
    """Configuration wrapper with dot-notation access."""

    def __init__(self, config_path: Optional[str] = None, cli_args=None):
        self.config_path = config_path
        self.config_data = load_config(config_path)
        self._apply_cli_overrides(cli_args)

    def _apply_cli_overrides(self, cli_args):
        """Apply command line argument overrides."""
        if not cli_args:
            return

        if getattr(cli_args, 'variant', None):
            self.config_data['harness']['variant'] = cli_args.variant
        if getattr(cli_args, 'runner_timeout', None):
            self.config_data['harness']['runner_timeout'] = cli_args.runner_timeout
        if getattr(cli_args, 'image', None):
            self.config_data['emulator']['image'] = cli_args.image
        if getattr(cli_args, 'no_container', False):
            self.config_data['emulator']['manage_container'] = False
        if getattr(cli_args, 'debug', False):
            self.config_data['debug'] = True
            self.config_data['logging']['log_level'] = 'DEBUG'

    @property
    def settings(self) -> HarnessSettings:
        return HarnessSettings.from_dict(self.config_data)

    def validate(self) -> bool:
        return validate_config(self.config_data)

    def get(self, key: str, default=None):
        """Get configuration value with dot notation support."""
        keys = key.split('.')
        value = self.config_data

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

