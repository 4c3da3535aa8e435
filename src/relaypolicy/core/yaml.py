"""YAML configuration loading.

Configuration files are parsed with ``yaml.safe_load`` so that untrusted
YAML can never instantiate Python objects. Used by the ``from_yaml()``
factories of [Pool][relaypolicy.core.pool.Pool],
[PolicyStore][relaypolicy.core.store.PolicyStore], and the CLI.

Examples:
    ```python
    from relaypolicy.core.yaml import load_yaml

    config = load_yaml("config/relaypolicy.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file into a dictionary.

    The result is not schema-validated; callers hand it to a Pydantic model
    such as [PoolConfig][relaypolicy.core.pool.PoolConfig].

    Returns:
        The parsed mapping, or an empty dict when the file holds no data.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            its top level is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
