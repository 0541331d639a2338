"""Tests for document snapshots."""

import json

import pytest

from suggestion_engine.store import SuggestionStore, load_snapshot


class TestSuggestionStore:
    def test_from_dict(self, sample_content):
        store = SuggestionStore.from_dict(
            {
                "content": sample_content,
                "suggestions": [{"id": "a", "type": "spelling", "startOffset": 0, "endOffset": 3}],
            }
        )
        assert len(store) == 1
        assert store.get("a").end_offset == 3
        assert store.get("missing") is None

    def test_without_returns_new_snapshot(self, sample_content, sample_suggestions):
        store = SuggestionStore(sample_content, tuple(sample_suggestions))
        smaller = store.without(["s-teh-1", "s-their"])
        assert [s.id for s in smaller.suggestions] == ["s-teh-2", "s-tomorrow"]
        assert len(store) == 4

    def test_replace_content(self, sample_suggestions):
        store = SuggestionStore("old", tuple(sample_suggestions))
        updated = store.replace_content("new")
        assert updated.content == "new"
        assert updated.suggestions == store.suggestions

    def test_to_dict_round_trip(self, sample_content, sample_suggestions):
        store = SuggestionStore(sample_content, tuple(sample_suggestions))
        data = json.loads(json.dumps(store.to_dict()))
        assert data["suggestions"][0]["startOffset"] == 0
        assert SuggestionStore.from_dict(data) == store


class TestLoadSnapshot:
    def test_load(self, document_file):
        store = load_snapshot(document_file)
        assert len(store) == 4
        assert store.content.startswith("Teh quick")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_snapshot(tmp_path / "nope.json")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            load_snapshot(path)
