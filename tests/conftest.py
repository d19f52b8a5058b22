from __future__ import annotations

import pytest

from secure_backup.storage import Storage, TransferInfo


@pytest.fixture
def config_dir(tmp_path):
    """A config directory with a one-line "hello" file to back up."""
    (tmp_path / "hello.txt").write_bytes(b"hello")
    (tmp_path / "transfer.info").write_text("127.0.0.1:1256\nalice\nhello.txt\n")
    return tmp_path


@pytest.fixture
def storage(config_dir):
    return Storage(str(config_dir))


@pytest.fixture
def transfer_info(config_dir):
    return TransferInfo("127.0.0.1", 1256, "alice", str(config_dir / "hello.txt"))
