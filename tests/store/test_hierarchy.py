from __future__ import annotations

import pytest

from bizgraph.errors import HierarchyPathError
from bizgraph.store.hierarchy import build_path, is_within, split_path


def test_build_path_drops_missing_ancestors() -> None:
    assert build_path("E1", "F1", "B1") == "E1.F1.B1"
    assert build_path("E1", None, "B2", "P2") == "E1.B2.P2"
    assert build_path(None, "C2") == "C2"


def test_build_path_rejects_delimiter_in_key() -> None:
    with pytest.raises(HierarchyPathError):
        build_path("E1", "F.1")


def test_build_path_needs_a_key() -> None:
    with pytest.raises(HierarchyPathError):
        build_path(None, None)
    with pytest.raises(HierarchyPathError):
        build_path("E1", "")


def test_split_path() -> None:
    assert split_path("E1.F1.B1") == ["E1", "F1", "B1"]
    assert split_path("") == []


def test_is_within_matches_whole_segments() -> None:
    assert is_within("E1", "E1")
    assert is_within("E1.F1.B1", "E1.F1")
    assert not is_within("E10", "E1")
    assert not is_within("E10.F1", "E1")
    assert not is_within(None, "E1")
