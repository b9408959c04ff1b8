"""Persistence of recently applied revset filters.

The history lives in ~/.config/lattice/recent_filters.toml as a single
`filters = [...]` array, most recent first.
"""

import logging
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import tomlkit

from lattice.core.config import config_dir

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 10


def normalize_history(filters: Sequence[str], max_entries: int) -> list[str]:
    """De-duplicate (keeping the first occurrence), drop blanks, truncate."""
    seen: set[str] = set()
    result: list[str] = []
    for expression in filters:
        expression = expression.strip()
        if not expression or expression in seen:
            continue
        seen.add(expression)
        result.append(expression)
    return result[:max_entries]


class FilterHistoryStore(ABC):
    """Abstract interface for filter history persistence."""

    @abstractmethod
    def load(self) -> list[str]:
        """Load the history, most recent first. Missing history is empty."""
        ...

    @abstractmethod
    def save(self, filters: Sequence[str]) -> None:
        """Replace the stored history.

        Raises:
            OSError: If the history file cannot be written
        """
        ...

    @abstractmethod
    def path(self) -> Path:
        ...


class FilesystemFilterHistoryStore(FilterHistoryStore):
    """Production implementation that reads/writes recent_filters.toml."""

    def __init__(self, history_path: Path | None = None, max_entries: int = DEFAULT_MAX_HISTORY):
        self._history_path = history_path
        self._max_entries = max_entries

    def load(self) -> list[str]:
        history_path = self.path()
        if not history_path.exists():
            return []

        try:
            data = tomllib.loads(history_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Ignoring unreadable filter history %s: %s", history_path, e)
            return []

        filters = data.get("filters", [])
        if not isinstance(filters, list):
            logger.warning("Ignoring filter history %s: 'filters' is not a list", history_path)
            return []
        return normalize_history([f for f in filters if isinstance(f, str)], self._max_entries)

    def save(self, filters: Sequence[str]) -> None:
        history_path = self.path()
        history_path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add(tomlkit.comment("Recently applied revset filters, most recent first"))
        entries = tomlkit.array()
        entries.extend(normalize_history(filters, self._max_entries))
        doc["filters"] = entries

        history_path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    def path(self) -> Path:
        if self._history_path is not None:
            return self._history_path
        return config_dir() / "recent_filters.toml"


class InMemoryFilterHistoryStore(FilterHistoryStore):
    """Test implementation that keeps history in memory."""

    def __init__(
        self,
        filters: Sequence[str] | None = None,
        *,
        max_entries: int = DEFAULT_MAX_HISTORY,
        save_error: OSError | None = None,
    ) -> None:
        self._filters = list(filters or [])
        self._max_entries = max_entries
        self._save_error = save_error
        self._save_count = 0

    @property
    def filters(self) -> list[str]:
        return list(self._filters)

    @property
    def save_count(self) -> int:
        return self._save_count

    def load(self) -> list[str]:
        return list(self._filters)

    def save(self, filters: Sequence[str]) -> None:
        if self._save_error is not None:
            raise self._save_error
        self._save_count += 1
        self._filters = normalize_history(filters, self._max_entries)

    def path(self) -> Path:
        return Path("/test/lattice/recent_filters.toml")
