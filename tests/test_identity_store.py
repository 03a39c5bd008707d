import json

import pytest

from shared.errors import ConfigError
from minechat.identity_store import IdentityStore


def test_missing_file_is_empty_store(tmp_path):
    store = IdentityStore(tmp_path / "nested" / "servers.json")
    assert store.entries == []
    assert store.lookup("localhost:25575") is None


def test_upsert_writes_servers_file(tmp_path):
    path = tmp_path / "nested" / "servers.json"
    store = IdentityStore(path)

    store.upsert("localhost:25575", "id-1")

    assert json.loads(path.read_text()) == {
        "servers": [{"address": "localhost:25575", "uuid": "id-1"}]
    }
    assert list(path.parent.glob("*.tmp")) == []


def test_last_duplicate_wins_and_upsert_collapses_duplicates(tmp_path):
    path = tmp_path / "servers.json"
    path.write_text(json.dumps({"servers": [
        {"address": "a:1", "uuid": "first"},
        {"address": "b:2", "uuid": "other"},
        {"address": "a:1", "uuid": "second"},
    ]}))
    store = IdentityStore(path)
    assert store.lookup("a:1") == "second"

    store.upsert("a:1", "third")

    servers = json.loads(path.read_text())["servers"]
    assert servers == [
        {"address": "b:2", "uuid": "other"},
        {"address": "a:1", "uuid": "third"},
    ]


@pytest.mark.parametrize("content", [
    "{not json",
    "[]",
    '{"servers": {}}',
    '{"servers": ["a:1"]}',
    '{"servers": [{"address": "a:1"}]}',
])
def test_corrupt_file_is_config_error(tmp_path, content):
    path = tmp_path / "servers.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        IdentityStore(path)
