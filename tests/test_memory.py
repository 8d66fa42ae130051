"""Tests for the two-tier memory store."""

import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from yuebot.agent.memory import (
    GLOBAL_SCOPE,
    IdentityRecord,
    LongTermMemory,
    MemoryStore,
    ScopeState,
    UNDATED,
    Turn,
)


def _store(tmp_path, mode="per_user", max_history=60) -> MemoryStore:
    return MemoryStore(
        history_path=tmp_path / "chat_history.json",
        memory_path=tmp_path / "memory.json",
        mode=mode,
        max_history=max_history,
    )


def _user(text: str, label: str = "Ana") -> Turn:
    return Turn(role="user", speaker_label=label, text=text)


# ── models ──────────────────────────────────────────────────────


class TestTurn:
    def test_accepts_legacy_content_key(self):
        turn = Turn.model_validate({"role": "user", "content": "hola"})
        assert turn.text == "hola"
        assert turn.condensed is False
        assert isinstance(turn.created_at, datetime)

    def test_is_frozen(self):
        turn = _user("hi")
        with pytest.raises(ValidationError):
            turn.text = "changed"

    def test_dump_uses_text_key(self):
        data = _user("hi").model_dump(mode="json")
        assert data["text"] == "hi"
        assert "content" not in data


class TestIdentityRecord:
    def test_same_label_is_noop(self):
        record = IdentityRecord(current_label="Ana")
        assert record.observe("Ana") is False
        assert record.prior_labels == []

    def test_label_change_pushes_previous(self):
        record = IdentityRecord(current_label="Ana")
        assert record.observe("Anita") is True
        assert record.current_label == "Anita"
        assert record.prior_labels == ["Ana"]

    def test_prior_labels_deduplicated(self):
        record = IdentityRecord(current_label="Ana")
        record.observe("Anita")
        record.observe("Ana")
        record.observe("Anita")
        assert record.prior_labels == ["Ana", "Anita"]


class TestLongTermMemory:
    def test_summaries_capped_most_recent_last(self):
        memory = LongTermMemory()
        for i in range(5):
            memory.add_summary(f"s{i}", limit=3)
        assert memory.summaries == ["s2", "s3", "s4"]

    def test_facts_deduplicated_in_merge_order(self):
        memory = LongTermMemory(facts=["a", "b"])
        memory.merge_facts(["b", "c", "c", "d"], limit=10)
        assert memory.facts == ["a", "b", "c", "d"]

    def test_facts_capped_keep_last(self):
        memory = LongTermMemory()
        memory.merge_facts([f"f{i}" for i in range(15)], limit=10)
        assert memory.facts == [f"f{i}" for i in range(5, 15)]

    def test_zero_limit_keeps_nothing(self):
        memory = LongTermMemory(summaries=["old"], facts=["a"])
        memory.add_summary("new", limit=0)
        memory.merge_facts(["b"], limit=0)
        assert memory.summaries == []
        assert memory.facts == []

    def test_register_identity_creates_then_updates(self):
        memory = LongTermMemory()
        memory.register_identity("1", "Ana")
        memory.register_identity("1", "Anita")
        assert memory.identities["1"].current_label == "Anita"
        assert memory.identities["1"].prior_labels == ["Ana"]


class TestScopeState:
    def test_fresh_count_ignores_condensed(self):
        scope = ScopeState(turns=[
            Turn(role="user", text="a", condensed=True),
            Turn(role="assistant", text="b", condensed=True),
            Turn(role="user", text="c"),
        ])
        assert scope.fresh_count == 1

    def test_last_turn(self):
        assert ScopeState().last_turn is None
        scope = ScopeState(turns=[_user("a"), _user("b")])
        assert scope.last_turn.text == "b"


# ── scopes ──────────────────────────────────────────────────────


class TestScopes:
    def test_per_user_scope_is_identity(self, tmp_path):
        store = _store(tmp_path, mode="per_user")
        assert store.scope_id_for("42") == "42"

    def test_shared_scope_is_global(self, tmp_path):
        store = _store(tmp_path, mode="shared")
        assert store.scope_id_for("42") == GLOBAL_SCOPE
        assert store.scope_id_for("7") == GLOBAL_SCOPE

    def test_get_scope_creates_empty(self, tmp_path):
        store = _store(tmp_path)
        scope = store.get_scope("new")
        assert scope.turns == []
        assert store.get_scope("new") is scope

    def test_mutate_returns_result(self, tmp_path):
        store = _store(tmp_path)
        store.append_turn("1", _user("hi"))
        assert store.mutate("1", lambda s: len(s.turns)) == 1

    def test_trim_drops_oldest(self, tmp_path):
        store = _store(tmp_path, max_history=3)
        for i in range(5):
            store.append_turn("1", _user(str(i)))
        assert store.trim("1") == 2
        assert [t.text for t in store.get_scope("1").turns] == ["2", "3", "4"]

    def test_trim_under_limit(self, tmp_path):
        store = _store(tmp_path, max_history=3)
        store.append_turn("1", _user("a"))
        assert store.trim("1") == 0


# ── persistence ─────────────────────────────────────────────────


class TestLoad:
    def test_missing_files_start_empty(self, tmp_path):
        store = _store(tmp_path)
        store.load()
        assert store.scopes() == {}

    def test_corrupt_json_starts_empty(self, tmp_path):
        (tmp_path / "chat_history.json").write_text("{not json")
        (tmp_path / "memory.json").write_text("")
        store = _store(tmp_path)
        store.load()
        assert store.scopes() == {}

    def test_wrong_shape_starts_empty(self, tmp_path):
        # A shared-layout list loaded in per_user mode
        (tmp_path / "chat_history.json").write_text(json.dumps([{"role": "user", "text": "hi"}]))
        store = _store(tmp_path, mode="per_user")
        store.load()
        assert store.scopes() == {}

    def test_loads_legacy_per_user_history(self, tmp_path):
        legacy = {
            "111": [
                {"role": "user", "content": "hola Yue"},
                {"role": "assistant", "content": "Hola."},
            ],
        }
        (tmp_path / "chat_history.json").write_text(json.dumps(legacy))
        store = _store(tmp_path)
        store.load()
        turns = store.get_scope("111").turns
        assert [t.text for t in turns] == ["hola Yue", "Hola."]
        assert [t.role for t in turns] == ["user", "assistant"]
        assert all(t.created_at == UNDATED for t in turns)

    def test_loads_shared_memory(self, tmp_path):
        doc = {"summaries": ["s"], "facts": ["f"], "identities": {"1": {"current_label": "Ana"}}}
        (tmp_path / "memory.json").write_text(json.dumps(doc))
        store = _store(tmp_path, mode="shared")
        store.load()
        memory = store.get_scope(GLOBAL_SCOPE).memory
        assert memory.summaries == ["s"]
        assert memory.identities["1"].current_label == "Ana"


class TestSave:
    def test_per_user_layout(self, tmp_path):
        store = _store(tmp_path, mode="per_user")
        store.append_turn("1", _user("hi"))
        store.register_identity("1", "1", "Ana")
        store.save()

        history = json.loads((tmp_path / "chat_history.json").read_text())
        memory = json.loads((tmp_path / "memory.json").read_text())
        assert isinstance(history, dict)
        assert history["1"][0]["text"] == "hi"
        assert memory["1"]["identities"]["1"]["current_label"] == "Ana"

    def test_shared_layout(self, tmp_path):
        store = _store(tmp_path, mode="shared")
        store.append_turn(GLOBAL_SCOPE, _user("hi"))
        store.save()

        history = json.loads((tmp_path / "chat_history.json").read_text())
        memory = json.loads((tmp_path / "memory.json").read_text())
        assert isinstance(history, list)
        assert history[0]["text"] == "hi"
        assert set(memory) == {"summaries", "facts", "identities"}

    def test_roundtrip_preserves_condensed_flag(self, tmp_path):
        store = _store(tmp_path)
        store.append_turn("1", Turn(role="user", text="old", condensed=True))
        store.append_turn("1", _user("new"))
        store.save()

        reloaded = _store(tmp_path)
        reloaded.load()
        assert [t.condensed for t in reloaded.get_scope("1").turns] == [True, False]

    def test_backup_made_before_overwrite(self, tmp_path):
        store = _store(tmp_path)
        store.append_turn("1", _user("first"))
        store.save()
        store.append_turn("1", _user("second"))
        store.save()

        backup = json.loads((tmp_path / "chat_history.json.bak").read_text())
        assert len(backup["1"]) == 1
        current = json.loads((tmp_path / "chat_history.json").read_text())
        assert len(current["1"]) == 2

    def test_periodic_save_skipped_when_closing(self, tmp_path):
        store = _store(tmp_path)
        store.append_turn("1", _user("hi"))
        store.closing = True
        assert store.save_history() is False
        assert store.save_memory() is False
        assert not (tmp_path / "chat_history.json").exists()

    def test_final_save_runs_when_closing(self, tmp_path):
        store = _store(tmp_path)
        store.append_turn("1", _user("hi"))
        store.closing = True
        store.save(final=True)
        assert (tmp_path / "chat_history.json").exists()
        assert (tmp_path / "memory.json").exists()

    def test_write_error_is_swallowed(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = MemoryStore(blocker / "h.json", blocker / "m.json")
        store.append_turn("1", _user("hi"))
        assert store.save_history() is False
