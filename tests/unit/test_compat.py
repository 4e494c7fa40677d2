"""Test TOML reading."""

from pathlib import Path

import pytest

from monopub.compat import read_toml
from monopub.errors import ConfigurationError


def test_reads_table(tmp_path: Path):
    path = tmp_path / "pyproject.toml"
    path.write_text('[project]\nname = "pkg-a"\n')

    assert read_toml(path) == {"project": {"name": "pkg-a"}}


def test_invalid_toml(tmp_path: Path):
    path = tmp_path / "pyproject.toml"
    path.write_text("[project\n")

    with pytest.raises(ConfigurationError, match="Invalid pyproject.toml") as exc_info:
        read_toml(path)

    assert exc_info.value.path == path


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="pyproject.toml not found"):
        read_toml(tmp_path / "pyproject.toml")
