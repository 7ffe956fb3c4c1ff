# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""YAML configuration file loader utilities.

Used for the tenant list file (TENANT_NAMES_FILE) and for reading back YAML
schema dumps.

Example:
    >>> from pathlib import Path
    >>> from tenantops.core.config.yaml_loader import load_yaml
    >>> config = load_yaml(Path("config/tenants.yaml"))
    >>> config["tenants"]
    ['acme', 'beta']
"""

from pathlib import Path
from typing import Any

import yaml

from tenantops.core.exceptions import ConfigurationError


class YAMLLoadError(ConfigurationError):
    """Raised when YAML file cannot be loaded or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize YAMLLoadError.

        Args:
            path: Path to the YAML file that failed to load.
            reason: Description of why the file failed to load.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load YAML file '{path}': {reason}")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dictionary.

    Args:
        path: Path to the YAML file to load.

    Returns:
        Dictionary containing the parsed YAML contents.
        Empty dict if file is empty.

    Raises:
        YAMLLoadError: If the file doesn't exist, cannot be read,
            or contains invalid YAML.
    """
    if not path.exists():
        raise YAMLLoadError(path, "File does not exist")

    if not path.is_file():
        raise YAMLLoadError(path, "Path is not a file")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise YAMLLoadError(path, f"Cannot read file: {e}") from e

    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise YAMLLoadError(path, f"Invalid YAML syntax: {e}") from e

    # Handle empty files
    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise YAMLLoadError(
            path, f"YAML root must be a mapping, got {type(parsed).__name__}"
        )

    return parsed


def load_tenant_names(path: Path) -> list[str]:
    """Load the ``tenants`` list from a YAML file.

    Args:
        path: Path to a YAML file whose root mapping has a ``tenants`` key.

    Returns:
        Tenant identifiers as strings, in file order. Empty if the key is
        missing or null.

    Raises:
        YAMLLoadError: If the file cannot be loaded or ``tenants`` is not a list.
    """
    tenants = load_yaml(path).get("tenants")
    if tenants is None:
        return []

    if not isinstance(tenants, list):
        raise YAMLLoadError(
            path, f"'tenants' must be a list, got {type(tenants).__name__}"
        )

    return [str(tenant) for tenant in tenants if tenant is not None]
