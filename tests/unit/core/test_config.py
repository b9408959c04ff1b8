"""Tests for configuration loading."""

from pathlib import Path

import pytest

from lattice.core.config import (
    CONFIG_ENV_VAR,
    FilesystemConfigStore,
    InMemoryConfigStore,
    LatticeConfig,
    parse_config,
)


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    store = FilesystemConfigStore(tmp_path / "config.toml")

    assert not store.exists()
    assert store.load() == LatticeConfig()


def test_values_are_read_from_toml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        'jj_binary = "/usr/local/bin/jj"\n'
        "log_limit = 200\n"
        "refresh_interval_ticks = 4\n"
        'log_file = "/tmp/lattice-test.log"\n'
        'unknown_key = "ignored"\n',
        encoding="utf-8",
    )

    config = FilesystemConfigStore(config_path).load()

    assert config.jj_binary == "/usr/local/bin/jj"
    assert config.log_limit == 200
    assert config.refresh_interval_ticks == 4
    assert config.resolved_log_file == Path("/tmp/lattice-test.log")
    assert config.max_filter_history == 10


def test_malformed_toml_raises_value_error(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("log_limit = [", encoding="utf-8")

    with pytest.raises(ValueError, match="Malformed config file"):
        FilesystemConfigStore(config_path).load()


def test_wrong_type_raises_value_error() -> None:
    with pytest.raises(ValueError, match="'log_limit' in test.toml must be an integer"):
        parse_config({"log_limit": "many"}, source="test.toml")


def test_boolean_is_not_an_integer() -> None:
    with pytest.raises(ValueError, match="must be an integer"):
        parse_config({"log_limit": True}, source="test.toml")


def test_non_positive_values_are_rejected() -> None:
    with pytest.raises(ValueError, match="'tick_interval_ms' must be positive"):
        LatticeConfig(tick_interval_ms=0)


def test_environment_variable_overrides_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = tmp_path / "custom.toml"
    config_path.write_text("log_limit = 42\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    store = FilesystemConfigStore()

    assert store.path() == config_path
    assert store.load().log_limit == 42


def test_explicit_path_beats_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.toml"))
    explicit = tmp_path / "explicit.toml"

    assert FilesystemConfigStore(explicit).path() == explicit


def test_in_memory_store() -> None:
    assert InMemoryConfigStore().load() == LatticeConfig()
    assert not InMemoryConfigStore().exists()
    config = LatticeConfig(log_limit=5)
    assert InMemoryConfigStore(config).load() is config
