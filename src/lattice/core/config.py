"""Configuration data structures and loading.

Provides immutable config data loaded from ~/.config/lattice/config.toml
(or the file named by LATTICE_CONFIG). Loaded once at the CLI entry point.
"""

import os
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from pathlib import Path

CONFIG_ENV_VAR = "LATTICE_CONFIG"


def config_dir() -> Path:
    return Path.home() / ".config" / "lattice"


@dataclass(frozen=True)
class LatticeConfig:
    """Immutable configuration data.

    Tick and refresh values are counted in ticks of `tick_interval_ms`.
    """

    jj_binary: str = "jj"
    log_limit: int = 500
    tick_interval_ms: int = 250
    refresh_interval_ticks: int = 8
    warning_ttl_ticks: int = 20
    max_filter_history: int = 10
    log_file: Path | None = None

    def __post_init__(self) -> None:
        for name in (
            "log_limit",
            "tick_interval_ms",
            "refresh_interval_ticks",
            "warning_ttl_ticks",
            "max_filter_history",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"'{name}' must be positive, got {value}")

    @property
    def resolved_log_file(self) -> Path:
        if self.log_file is not None:
            return self.log_file
        return config_dir() / "lattice.log"


class ConfigStore(ABC):
    """Abstract interface for config access.

    Provides dependency injection for config loading, enabling in-memory
    implementations for tests without touching filesystem.
    """

    @abstractmethod
    def exists(self) -> bool:
        """Check if a config file exists."""
        ...

    @abstractmethod
    def load(self) -> LatticeConfig:
        """Load config, falling back to defaults when no file exists.

        Raises:
            ValueError: If the file is malformed or holds invalid values
        """
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the config file (for error messages and debugging)."""
        ...


class FilesystemConfigStore(ConfigStore):
    """Production implementation that reads config.toml."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def exists(self) -> bool:
        return self.path().exists()

    def load(self) -> LatticeConfig:
        config_path = self.path()
        if not config_path.exists():
            return LatticeConfig()

        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Malformed config file {config_path}: {e}") from e

        return parse_config(data, source=str(config_path))

    def path(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return config_dir() / "config.toml"


class InMemoryConfigStore(ConfigStore):
    """Test implementation that stores config in memory without touching filesystem."""

    def __init__(self, config: LatticeConfig | None = None) -> None:
        self._config = config

    def exists(self) -> bool:
        return self._config is not None

    def load(self) -> LatticeConfig:
        if self._config is None:
            return LatticeConfig()
        return self._config

    def path(self) -> Path:
        return Path("/test/lattice/config.toml")


def parse_config(data: dict, *, source: str) -> LatticeConfig:
    """Build a LatticeConfig from parsed TOML, ignoring unknown keys.

    Raises:
        ValueError: If a known key has the wrong type or an invalid value
    """
    known = {f.name: f for f in fields(LatticeConfig)}
    values: dict[str, object] = {}
    for key, raw in data.items():
        if key not in known:
            continue
        if key == "log_file":
            if not isinstance(raw, str):
                raise ValueError(f"'log_file' in {source} must be a string")
            values[key] = Path(raw).expanduser()
        elif key == "jj_binary":
            if not isinstance(raw, str) or not raw:
                raise ValueError(f"'jj_binary' in {source} must be a non-empty string")
            values[key] = raw
        else:
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ValueError(f"'{key}' in {source} must be an integer")
            values[key] = raw
    return LatticeConfig(**values)  # type: ignore[arg-type]
