import argparse

import pytest

from scripts import migrate_chat_identity as cli

FULL_ENV = {
    "APPWRITE_ENDPOINT": "https://appwrite.example.com",
    "APPWRITE_PROJECT": "proj",
    "APPWRITE_DATABASE_ID": "main",
    "APPWRITE_CHATS_COLLECTION_ID": "chats",
    "APPWRITE_MESSAGES_COLLECTION_ID": "messages",
    "APPWRITE_API_KEY": "key",
}


class _StoreContext:
    """Stands in for DocumentStoreClient(config) and yields the shared fake store."""

    def __init__(self, store):
        self.store = store

    def __call__(self, config):
        return self

    async def __aenter__(self):
        return self.store

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.mark.parametrize(
    "argv,expected",
    [
        ([], True),
        (["--dry-run"], True),
        (["--dry-run=true"], True),
        (["--dry-run=false"], False),
        (["--dry-run", "no"], False),
        (["--dry-run=0"], False),
    ],
)
def test_dry_run_flag(argv, expected):
    assert cli.build_parser().parse_args(argv).dry_run is expected


def test_parse_bool_rejects_garbage():
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_bool("maybe")


def test_missing_config_exits_before_any_network_call(monkeypatch, capsys):
    def fail_client(config):
        raise AssertionError("store client must not be created")

    monkeypatch.setattr(cli, "DocumentStoreClient", fail_client)

    code = cli.main([], environ={"APPWRITE_ENDPOINT": "https://appwrite.example.com"})

    assert code == 1
    assert "APPWRITE_API_KEY" in capsys.readouterr().out


def test_live_run_exits_zero_and_prints_summary(monkeypatch, capsys, store):
    store.add("chats", {"$id": "c1", "members": ["u1", "u2"]})
    store.add("messages", {"$id": "m1", "chatId": "c1"})
    monkeypatch.setattr(cli, "DocumentStoreClient", _StoreContext(store))

    code = cli.main(["--dry-run=false"], environ=dict(FULL_ENV))

    out = capsys.readouterr().out
    assert code == 0
    assert "Mode: LIVE" in out
    assert "Messages reassigned: 1" in out
    assert store.doc("messages", "m1")["chatId"] == "dm_u1_u2"


def test_default_run_is_dry(monkeypatch, capsys, store):
    store.add("chats", {"$id": "c1", "members": ["u1", "u2"]})
    monkeypatch.setattr(cli, "DocumentStoreClient", _StoreContext(store))

    code = cli.main([], environ=dict(FULL_ENV))

    assert code == 0
    assert store.writes == []
    assert "DRY-RUN" in capsys.readouterr().out


def test_entity_errors_still_exit_zero(monkeypatch, store):
    store.add("chats", {"$id": "c1", "members": ["u1", "u2"]})
    store.fail_create.add("dm_u1_u2")
    monkeypatch.setattr(cli, "DocumentStoreClient", _StoreContext(store))

    assert cli.main(["--dry-run=false"], environ=dict(FULL_ENV)) == 0


def test_chat_listing_failure_exits_non_zero(monkeypatch, capsys, store):
    store.fail_list.add("chats")
    monkeypatch.setattr(cli, "DocumentStoreClient", _StoreContext(store))

    code = cli.main(["--dry-run=false"], environ=dict(FULL_ENV))

    assert code == 1
    assert "nothing was migrated" in capsys.readouterr().out
