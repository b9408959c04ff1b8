"""Tests for recent filter persistence."""

import logging
from pathlib import Path

import pytest

from lattice.core.filter_history import (
    FilesystemFilterHistoryStore,
    InMemoryFilterHistoryStore,
    normalize_history,
)


def test_normalize_history_dedupes_and_truncates() -> None:
    assert normalize_history(["a()", " b() ", "a()", "", "c()"], 2) == ["a()", "b()"]


def test_missing_history_is_empty(tmp_path: Path) -> None:
    store = FilesystemFilterHistoryStore(tmp_path / "recent_filters.toml")

    assert store.load() == []


def test_history_round_trip(tmp_path: Path) -> None:
    history_path = tmp_path / "nested" / "recent_filters.toml"
    store = FilesystemFilterHistoryStore(history_path)

    store.save(["mine()", "trunk()", "mine()"])

    assert store.load() == ["mine()", "trunk()"]
    content = history_path.read_text(encoding="utf-8")
    assert content.startswith("# Recently applied revset filters")
    assert "filters = " in content


def test_save_truncates_to_max_entries(tmp_path: Path) -> None:
    store = FilesystemFilterHistoryStore(tmp_path / "h.toml", max_entries=2)

    store.save(["a()", "b()", "c()"])

    assert store.load() == ["a()", "b()"]


def test_unreadable_history_is_ignored_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    history_path = tmp_path / "recent_filters.toml"
    history_path.write_text("filters = [", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="lattice.core.filter_history"):
        assert FilesystemFilterHistoryStore(history_path).load() == []

    assert "Ignoring unreadable filter history" in caplog.text


def test_non_list_history_is_ignored(tmp_path: Path) -> None:
    history_path = tmp_path / "recent_filters.toml"
    history_path.write_text('filters = "mine()"\n', encoding="utf-8")

    assert FilesystemFilterHistoryStore(history_path).load() == []


def test_in_memory_store_tracks_saves() -> None:
    store = InMemoryFilterHistoryStore(["a()"])

    store.save(["b()", "a()"])

    assert store.filters == ["b()", "a()"]
    assert store.save_count == 1


def test_in_memory_store_can_fail() -> None:
    store = InMemoryFilterHistoryStore(save_error=PermissionError("read-only"))

    with pytest.raises(PermissionError):
        store.save(["a()"])
    assert store.save_count == 0
