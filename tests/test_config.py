"""
tests/test_config.py — YAML Configuration Tests
================================================
"""

from __future__ import annotations

import pytest

from wellspring.config import WellspringConfig, load_config

VALID = """\
platform_name: Wellspring Dev
default_timezone: America/Sao_Paulo
api_port: 8080
"""


def test_load_valid(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(VALID, encoding="utf-8")

    cfg = load_config(path)

    assert cfg == WellspringConfig(
        platform_name="Wellspring Dev",
        default_timezone="America/Sao_Paulo",
        api_port=8080,
        leaderboard_max_limit=100,
    )


def test_optional_limit(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(VALID + "leaderboard_max_limit: 25\n", encoding="utf-8")
    assert load_config(path).leaderboard_max_limit == 25


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "absent.yaml")


def test_missing_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("platform_name: X\ndefault_timezone: UTC\n", encoding="utf-8")
    with pytest.raises(KeyError):
        load_config(path)


def test_unknown_timezone(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(VALID.replace("America/Sao_Paulo", "Atlantis/Capital"), encoding="utf-8")
    with pytest.raises(ValueError, match="default_timezone"):
        load_config(path)
