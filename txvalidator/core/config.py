"""
Runtime configuration for txvalidator.

Defaults live on the dataclass; a JSON file and then environment variables
(optionally loaded from a ``.env`` file) override them.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv


ENV_PREFIX = "TXV_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ValidatorConfig:
    """Validator-wide configuration parameters"""

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = Path("logs")

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.log_dir = Path(self.log_dir)

    @property
    def level(self) -> int:
        """Numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
) -> ValidatorConfig:
    """
    Load configuration from file and environment, or use defaults.

    Precedence (lowest to highest): dataclass defaults, JSON config file,
    ``TXV_*`` environment variables. Variables from ``env_file`` (or a
    ``.env`` in the working directory) are loaded without overriding the
    real environment.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional path to a dotenv file

    Returns:
        ValidatorConfig instance

    Raises:
        ValueError: On unknown keys or malformed values
    """
    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)

    known = {f.name for f in fields(ValidatorConfig)}
    values = {}

    if config_path:
        data = json.loads(Path(config_path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a JSON object")
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        values.update(data)

    for name in known:
        env_name = ENV_PREFIX + name.upper()
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        if name == "log_to_file":
            values[name] = _parse_bool(env_name, raw)
        else:
            values[name] = raw

    if "log_to_file" in values and not isinstance(values["log_to_file"], bool):
        raise ValueError("log_to_file must be a boolean")

    return ValidatorConfig(**values)
