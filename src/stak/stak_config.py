"""
Configuration management for the Stak driver.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, List

import yaml

from stak.stak_error import StakConfigError
from stak.stak_vm import DEFAULT_MAX_CALL_DEPTH


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StakConfig:
    """Settings for compiling and running a Stak program."""

    optimize: bool = True
    validate: bool = True
    trace_frames: bool = True
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH
    dump_ir: bool = False
    log_level: str = "WARNING"

    @classmethod
    def load_from_file(cls, config_path: str) -> 'StakConfig':
        """
        Load configuration from a YAML file.

        Keys that are absent keep their defaults.

        Raises:
            StakConfigError: If the file is missing, is not valid YAML, or holds invalid settings
        """
        if not os.path.exists(config_path):
            raise StakConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

        except OSError as e:
            raise StakConfigError(f"Cannot read configuration file: {config_path}", context=str(e)) from e

        except yaml.YAMLError as e:
            raise StakConfigError(f"Invalid YAML in configuration file: {config_path}", context=str(e)) from e

        if data is None:
            data = {}

        if not isinstance(data, dict):
            raise StakConfigError(
                f"Configuration file must contain a mapping: {config_path}",
                received=f"Found: {type(data).__name__}",
                example="optimize: true\nmax_call_depth: 5000"
            )

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StakConfig':
        """
        Build a configuration from a plain mapping.

        Raises:
            StakConfigError: If the mapping holds unknown keys or invalid settings
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(key) for key in data if key not in known)
        if unknown:
            raise StakConfigError(
                f"Unknown configuration key(s): {', '.join(unknown)}",
                expected=f"One of: {', '.join(sorted(known))}"
            )

        config = cls(**data)
        errors = config.validation_errors()
        if errors:
            raise StakConfigError(f"Invalid configuration: {errors[0]}", context="\n".join(errors[1:]) or None)

        return config

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=True)

    def validation_errors(self) -> List[str]:
        """Validate the configuration and return any errors."""
        errors = []

        for name in ("optimize", "validate", "trace_frames", "dump_ir"):
            if not isinstance(getattr(self, name), bool):
                errors.append(f"'{name}' must be true or false")

        if isinstance(self.max_call_depth, bool) or not isinstance(self.max_call_depth, int) or self.max_call_depth < 1:
            errors.append("'max_call_depth' must be a positive integer")

        if not isinstance(self.log_level, str) or self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"'log_level' must be one of {', '.join(LOG_LEVELS)}")

        return errors
