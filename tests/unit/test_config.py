from pathlib import Path

import pytest

from src.config import (
    OBJECTIVE_KEY,
    USER_NAME_KEY,
    ConfigError,
    EngineConfig,
    MemoryTier,
    TwoTierStore,
    YamlFileTier,
    load_config,
    read_user_context,
)


def test_defaults_without_file():
    cfg = load_config(None)
    assert isinstance(cfg, EngineConfig)
    assert cfg.scheduler.attempt_limit == 3
    assert cfg.scheduler.debounce_s == 5.0
    assert cfg.secondary.enabled is True
    assert cfg.ops.logging.ops_json is False
    assert cfg.scheduler.profile_pattern().search("/in/jane-doe")


def test_example_config_loads():
    example = Path(__file__).resolve().parents[2] / "config" / "example.yaml"
    cfg = load_config(example)
    assert cfg.secondary.protocol_version == "2.0.0"
    assert cfg.scheduler.navigation_delay_s == 1.5


def test_partial_yaml_overrides(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("scheduler:\n  attempt_limit: 5\nsecondary:\n  source_root: https://example.com/api/\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg.scheduler.attempt_limit == 5
    assert cfg.scheduler.debounce_s == 5.0
    assert cfg.secondary.source_root == "https://example.com/api"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="file not found"):
        load_config(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("scheduler: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(p)


def test_top_level_must_be_mapping(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(p)


@pytest.mark.parametrize("body", [
    "scheduler:\n  attempt_limit: 0\n",
    "scheduler:\n  debounce_s: -1\n",
    "scheduler:\n  profile_path_pattern: '(['\n",
    "secondary:\n  source_root: ftp://example.com\n",
])
def test_schema_violations(tmp_path, body):
    p = tmp_path / "cfg.yaml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid config"):
        load_config(p)


class TestTwoTierStore:

    def test_reads_preferred_when_it_has_values(self, tmp_path):
        preferred = YamlFileTier(tmp_path / "store.yaml")
        preferred.set({USER_NAME_KEY: "Sam"})
        store = TwoTierStore(preferred, MemoryTier({USER_NAME_KEY: "Fallback", OBJECTIVE_KEY: "hiring"}))
        assert store.get([USER_NAME_KEY, OBJECTIVE_KEY]) == {USER_NAME_KEY: "Sam"}

    def test_falls_back_when_preferred_is_empty(self, tmp_path):
        store = TwoTierStore(YamlFileTier(tmp_path / "missing.yaml"), MemoryTier({OBJECTIVE_KEY: "hiring"}))
        assert store.get([USER_NAME_KEY, OBJECTIVE_KEY]) == {OBJECTIVE_KEY: "hiring"}

    def test_falls_back_when_preferred_unreadable(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("key: [unclosed\n", encoding="utf-8")
        store = TwoTierStore(YamlFileTier(broken), MemoryTier({USER_NAME_KEY: "Sam"}))
        assert store.get([USER_NAME_KEY]) == {USER_NAME_KEY: "Sam"}

    def test_write_falls_back_on_failure(self, capsys):
        class FailingTier(MemoryTier):
            def set(self, record):
                raise OSError("quota exceeded")

        fallback = MemoryTier()
        store = TwoTierStore(FailingTier(), fallback)
        store.set({OBJECTIVE_KEY: "partnerships"})
        assert fallback.data == {OBJECTIVE_KEY: "partnerships"}
        assert "[config] preferred store write failed" in capsys.readouterr().out

    def test_read_user_context(self, tmp_path):
        tier = YamlFileTier(tmp_path / "store.yaml")
        tier.set({USER_NAME_KEY: "  Sam  ", OBJECTIVE_KEY: ""})
        ctx = read_user_context(TwoTierStore(tier, MemoryTier()))
        assert ctx.user_name == "Sam"
        assert ctx.objective is None
