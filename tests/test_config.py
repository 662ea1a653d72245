"""
tests/test_config.py — YAML configuration loader
=================================================
"""

from __future__ import annotations

import pytest

from linkkeeper.config import load_config

MINIMAL = """
guild_name: Flava Flav
guild_id: 1234
officer_role_id: 5678
"""


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(MINIMAL, encoding="utf-8")
        cfg = load_config(path)
        assert cfg.guild_name == "Flava Flav"
        assert cfg.guild_id == 1234
        assert cfg.officer_role_id == 5678
        assert cfg.bot_prefix == "!"
        assert cfg.announce_channel_id is None
        assert (cfg.rules.silver_days, cfg.rules.gold_days, cfg.rules.max_absence_count) == (30, 90, 3)

    def test_rules_section(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            MINIMAL + "rules:\n  silver_eligibility_days: 14\n  max_absence_count: 5\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.rules.silver_days == 14
        assert cfg.rules.gold_days == 90
        assert cfg.rules.max_absence_count == 5

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text(MINIMAL, encoding="utf-8")
        monkeypatch.setenv("LINKKEEPER_CONFIG", str(path))
        assert load_config().guild_id == 1234

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("guild_name: X\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)

    def test_inconsistent_rules(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            MINIMAL + "rules:\n  silver_eligibility_days: 100\n  gold_eligibility_days: 90\n",
            encoding="utf-8",
        )
        with pytest.raises(ValueError):
            load_config(path)
