"""
Tests for persisted conversation memory and the key-value stores behind it.
"""

import json

import pytest

from conftest import FailingStore
from voice_companion.models.data_models import ConversationTurn, TurnRole
from voice_companion.providers.storage import InMemoryKeyValueStore, JsonFileKeyValueStore
from voice_companion.utils.error_handling import PersistenceFailure
from voice_companion.utils.persistent_memory import DEFAULT_MEMORY_KEY, PersistentMemoryStore


@pytest.fixture
def sample_turns():
    return [
        ConversationTurn(TurnRole.USER, "Remind me to take my pills at 5pm", timestamp=1.0),
        ConversationTurn(TurnRole.ASSISTANT, "I'll remember that!", timestamp=2.0),
    ]


class TestPersistentMemoryStore:

    def test_load_empty_store(self):
        assert PersistentMemoryStore(InMemoryKeyValueStore()).load() == []

    def test_save_then_load(self, sample_turns):
        kv = InMemoryKeyValueStore()
        memory_store = PersistentMemoryStore(kv)

        assert memory_store.save(sample_turns) is True

        assert memory_store.load() == sample_turns
        document = json.loads(kv.get(DEFAULT_MEMORY_KEY))
        assert document['version'] == 1
        assert document['turns'][0]['role'] == 'user'

    def test_custom_key(self, sample_turns):
        kv = InMemoryKeyValueStore()
        PersistentMemoryStore(kv, {'storage_key': 'companion'}).save(sample_turns)

        assert 'companion' in kv
        assert DEFAULT_MEMORY_KEY not in kv

    @pytest.mark.parametrize("raw", [
        "not json",
        '{"version": 1, "turns": "nope"}',
        '{"version": 1, "turns": [{"role": "ghost", "text": "boo"}]}',
        '{"version": 1, "turns": [{"text": "missing role"}]}',
        '42',
    ])
    def test_corrupt_data_loads_as_empty(self, raw):
        kv = InMemoryKeyValueStore()
        kv.set(DEFAULT_MEMORY_KEY, raw)

        assert PersistentMemoryStore(kv).load() == []

    def test_bare_list_is_accepted(self, sample_turns):
        kv = InMemoryKeyValueStore()
        kv.set(DEFAULT_MEMORY_KEY, json.dumps([t.to_dict() for t in sample_turns]))

        assert PersistentMemoryStore(kv).load() == sample_turns

    def test_save_failure_is_reported_not_raised(self, sample_turns):
        memory_store = PersistentMemoryStore(FailingStore())

        assert memory_store.save(sample_turns) is False
        assert isinstance(memory_store.last_error, PersistenceFailure)

    def test_clear(self, sample_turns):
        kv = InMemoryKeyValueStore()
        memory_store = PersistentMemoryStore(kv)
        memory_store.save(sample_turns)

        assert memory_store.clear() is True
        assert memory_store.load() == []
        assert DEFAULT_MEMORY_KEY not in kv


class TestJsonFileKeyValueStore:

    def test_missing_file_reads_as_absent(self, tmp_path):
        kv = JsonFileKeyValueStore({'path': str(tmp_path / "store.json")})

        assert kv.get("anything") is None

    def test_set_get_remove(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        kv = JsonFileKeyValueStore({'path': str(path)})

        kv.set("a", "1")
        kv.set("b", "2")
        assert kv.get("a") == "1"
        assert json.loads(path.read_text()) == {"a": "1", "b": "2"}

        kv.remove("a")
        assert kv.get("a") is None
        assert kv.get("b") == "2"

    def test_survives_new_instance(self, tmp_path, sample_turns):
        path = str(tmp_path / "memory.json")
        PersistentMemoryStore(JsonFileKeyValueStore({'path': path})).save(sample_turns)

        reloaded = PersistentMemoryStore(JsonFileKeyValueStore({'path': path})).load()

        assert reloaded == sample_turns

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{truncated")
        kv = JsonFileKeyValueStore({'path': str(path)})

        assert kv.get("conversation_memory") is None
        kv.set("k", "v")
        assert kv.get("k") == "v"

    def test_undecodable_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_bytes(b'{"conversation_memory": "\xff\xfe"}')
        memory_store = PersistentMemoryStore(JsonFileKeyValueStore({'path': str(path)}))

        assert memory_store.load() == []
        assert memory_store.save([ConversationTurn(TurnRole.USER, "Hello")]) is True
        assert memory_store.load()[0].text == "Hello"
        assert memory_store.clear() is True

    def test_write_failure_raises_persistence_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("I am a file, not a directory")
        kv = JsonFileKeyValueStore({'path': str(blocker / "store.json")})

        with pytest.raises(PersistenceFailure):
            kv.set("k", "v")

    def test_no_temp_files_left_behind(self, tmp_path):
        kv = JsonFileKeyValueStore({'path': str(tmp_path / "store.json")})
        kv.set("k", "v")

        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]
