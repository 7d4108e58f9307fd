from __future__ import annotations

import capabilities


def test_registry_is_consistent() -> None:
    assert capabilities.validate_registry() == []


def test_required_ids_present() -> None:
    ok, note = capabilities.smoke_test_registry(required_ids=["http.pack", "core.pack", "library.provision"])
    assert ok, note


def test_missing_required_id_is_reported() -> None:
    ok, note = capabilities.smoke_test_registry(required_ids=["ws.chat"])
    assert not ok
    assert "missing required capability: ws.chat" in note


def test_registry_json_shape() -> None:
    rows = capabilities.get_registry_json()
    ids = [row["id"] for row in rows]
    assert len(ids) == len(set(ids))
    assert all(isinstance(row["entrypoints"], list) for row in rows)
