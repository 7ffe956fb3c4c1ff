# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for YAML loader utilities."""

from pathlib import Path

import pytest

from tenantops.core.config.yaml_loader import (
    YAMLLoadError,
    load_tenant_names,
    load_yaml,
)
from tenantops.core.exceptions import ConfigurationError


class TestLoadYaml:
    """Tests for load_yaml function."""

    def test_load_valid_yaml_file(self, tmp_path: Path) -> None:
        """Test loading a valid YAML file."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("key: value\nnested:\n  inner: 42\n")

        result = load_yaml(yaml_file)

        assert result == {"key": "value", "nested": {"inner": 42}}

    def test_load_empty_yaml_file_returns_empty_dict(self, tmp_path: Path) -> None:
        """Test that empty YAML files return empty dict."""
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")

        assert load_yaml(yaml_file) == {}

    def test_load_yaml_with_list_root_raises_error(self, tmp_path: Path) -> None:
        """Test that YAML files with list root raise error."""
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- item1\n- item2\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "YAML root must be a mapping" in str(exc_info.value)

    def test_load_nonexistent_file_raises_error(self, tmp_path: Path) -> None:
        """Test that loading non-existent file raises error."""
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path / "missing.yaml")

        assert "File does not exist" in str(exc_info.value)

    def test_load_directory_raises_error(self, tmp_path: Path) -> None:
        """Test that loading a directory raises error."""
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path)

        assert "Path is not a file" in str(exc_info.value)

    def test_load_invalid_yaml_raises_error(self, tmp_path: Path) -> None:
        """Test that invalid YAML syntax raises error."""
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("key: [unclosed\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "Invalid YAML syntax" in str(exc_info.value)

    def test_error_is_configuration_error(self, tmp_path: Path) -> None:
        """Test that load errors are configuration errors."""
        with pytest.raises(ConfigurationError):
            load_yaml(tmp_path / "missing.yaml")


class TestLoadTenantNames:
    """Tests for load_tenant_names function."""

    def test_reads_tenant_list(self, tmp_path: Path) -> None:
        """Test reading the tenants key."""
        yaml_file = tmp_path / "tenants.yml"
        yaml_file.write_text("tenants:\n  - acme\n  - beta\n")

        assert load_tenant_names(yaml_file) == ["acme", "beta"]

    def test_missing_key_returns_empty(self, tmp_path: Path) -> None:
        """Test that a file without tenants yields an empty list."""
        yaml_file = tmp_path / "tenants.yml"
        yaml_file.write_text("other: 1\n")

        assert load_tenant_names(yaml_file) == []

    def test_null_entries_dropped_and_values_stringified(self, tmp_path: Path) -> None:
        """Test that null entries are skipped and scalars become strings."""
        yaml_file = tmp_path / "tenants.yml"
        yaml_file.write_text("tenants:\n  - acme\n  -\n  - 2024\n")

        assert load_tenant_names(yaml_file) == ["acme", "2024"]

    def test_non_list_raises_error(self, tmp_path: Path) -> None:
        """Test that a non-list tenants value raises error."""
        yaml_file = tmp_path / "tenants.yml"
        yaml_file.write_text("tenants: acme\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_tenant_names(yaml_file)

        assert "'tenants' must be a list" in str(exc_info.value)
