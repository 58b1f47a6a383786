"""YAML configuration loading for pomostr.

Uses ``yaml.safe_load`` so configuration files can only produce plain
YAML types. Consumed by
[NostrClient.from_yaml()][pomostr.core.client.NostrClient.from_yaml] and
[AppConfig.from_yaml()][pomostr.app.AppConfig.from_yaml].

Examples:
    ```python
    from pomostr.core.yaml import load_yaml

    config = load_yaml("config/pomostr.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a dictionary; an empty file yields ``{}``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.

    Warning:
        The returned dictionary is not schema-validated. Pass it to a
        Pydantic model such as
        [ClientConfig][pomostr.core.client.ClientConfig].
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data
