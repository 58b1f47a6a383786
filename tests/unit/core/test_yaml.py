"""
Unit tests for core.yaml module.

Tests:
- load_yaml() mapping, empty file, missing file
- ConfigurationError for invalid YAML and non-mapping documents
"""

from pathlib import Path

import pytest

from pomostr.core.exceptions import ConfigurationError
from pomostr.core.yaml import load_yaml


class TestLoadYaml:
    """load_yaml()."""

    def test_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("client:\n  connect_timeout: 5\n  default_relays:\n    - nos.lol\n")
        assert load_yaml(path) == {"client": {"connect_timeout": 5, "default_relays": ["nos.lol"]}}

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("a: 1\n")
        assert load_yaml(str(path)) == {"a": 1}

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("a: [1, 2\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml(path)

    def test_python_tags_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "unsafe.yaml"
        path.write_text("a: !!python/object/apply:os.system ['true']\n")
        with pytest.raises(ConfigurationError):
            load_yaml(path)
