from __future__ import annotations

import pytest

from secure_backup.errors import StorageError
from secure_backup.storage import Identity, Storage, parse_address


def test_read_transfer_info(storage, config_dir):
    info = storage.read_transfer_info()
    assert info.server_address == "127.0.0.1"
    assert info.port == 1256
    assert info.client_name == "alice"
    assert info.file_path == str(config_dir / "hello.txt")


def test_transfer_info_missing(tmp_path):
    with pytest.raises(StorageError, match="unable to open"):
        Storage(str(tmp_path)).read_transfer_info()


@pytest.mark.parametrize("text", ["127.0.0.1", "127.0.0.1:http", ":1256", "host:70000"])
def test_bad_address(text):
    with pytest.raises(StorageError):
        parse_address(text)


def test_transfer_info_too_short(tmp_path):
    (tmp_path / "transfer.info").write_text("127.0.0.1:1256\nalice\n")
    with pytest.raises(StorageError, match="3 lines"):
        Storage(str(tmp_path)).read_transfer_info()


def test_no_identity_before_registration(storage):
    assert storage.read_identity() is None


def test_identity_roundtrip(storage, config_dir):
    identity = Identity("alice", bytes(range(16)), "cHJpdmF0ZQ==")
    storage.write_identity(identity)
    assert (config_dir / "me.info").read_text() == (
        "alice\n000102030405060708090a0b0c0d0e0f\ncHJpdmF0ZQ==\n")
    loaded = storage.read_identity()
    assert loaded == identity
    assert loaded.private_key == b"private"


def test_identity_key_may_span_lines(storage, config_dir):
    (config_dir / "me.info").write_text("alice\n" + "ab" * 16 + "\ncHJp\ndmF0ZQ==\n")
    assert storage.read_identity().private_key == b"private"


def test_identity_bad_client_id(storage, config_dir):
    (config_dir / "me.info").write_text("alice\nabcd\ncHJpdmF0ZQ==\n")
    with pytest.raises(StorageError, match="16 bytes"):
        storage.read_identity()


def test_private_key_file(storage, config_dir):
    storage.write_private_key("cHJpdmF0ZQ==")
    assert (config_dir / "priv.key").read_text() == "cHJpdmF0ZQ==\n"


def test_read_file_bytes(storage, config_dir):
    assert storage.read_file_bytes(str(config_dir / "hello.txt")) == b"hello"
    with pytest.raises(StorageError):
        storage.read_file_bytes(str(config_dir / "missing.txt"))


def test_identity_bad_key_encoding(storage, config_dir):
    (config_dir / "me.info").write_text("alice\n" + "ab" * 16 + "\n!!!notbase64\n")
    with pytest.raises(StorageError, match="invalid base64"):
        storage.read_identity()


def test_identity_truncated(storage, config_dir):
    (config_dir / "me.info").write_text("alice\n")
    with pytest.raises(StorageError, match="3 lines"):
        storage.read_identity()


def test_rewrite_replaces_whole_file(storage, config_dir):
    storage.write_identity(Identity("alice", bytes(16), "Zmlyc3Qta2V5LXdpdGgtYS1sb25nZXItYm9keQ=="))
    storage.write_identity(Identity("bob", bytes(range(16)), "c2Vjb25k"))
    assert (config_dir / "me.info").read_text() == "bob\n000102030405060708090a0b0c0d0e0f\nc2Vjb25k\n"
    assert sorted(p.name for p in config_dir.iterdir()) == ["hello.txt", "me.info", "transfer.info"]
