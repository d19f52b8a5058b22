"""
client.py — Encrypted file backup client entry point.

Reads transfer.info (server, client name, file) from the config directory,
then picks the flow once:

  me.info present  — reconnect with the saved client id and RSA key
                     (falls back to registration if the server refuses).
  me.info absent   — register, generate and save an RSA key pair.
  me.info damaged  — treated as absent: a warning, then registration.

Either way the file is AES-encrypted with the key the server sends and
uploaded until the server's checksum matches ours (at most 3 attempts).

Usage:
    python -m secure_backup [--config-dir DIR] [--timeout SECONDS] [--log-level LEVEL]

Exit status is 0 only for a verified transfer.
"""

from __future__ import annotations

import argparse
from typing import Optional

from .constants import SOCKET_TIMEOUT
from .errors import StorageError
from .logs import configure_logging, get_logger
from .session import Session, SessionConfig
from .storage import Storage
from .transport import TcpTransport

logger = get_logger(__name__)


def run_backup(
    storage: Storage,
    timeout: Optional[float] = SOCKET_TIMEOUT,
    config: Optional[SessionConfig] = None,
) -> bool:
    """Run one backup; every fault ends up as a logged ``False``."""
    try:
        transfer_info = storage.read_transfer_info()
    except StorageError as e:
        logger.error("configuration error: %s", e)
        return False

    try:
        identity = storage.read_identity()
    except StorageError as e:
        logger.warning("ignoring unreadable identity, registering again: %s", e)
        identity = None

    transport = TcpTransport(transfer_info.server_address, transfer_info.port, timeout=timeout)
    try:
        with Session(transport, transfer_info, storage, config=config) as session:
            if not session.connect():
                return False
            if identity is not None:
                ok = session.run_reconnection(identity)
            else:
                ok = session.run_registration()
    except (StorageError, OSError) as e:
        logger.error("backup aborted: %s", e)
        return False
    except Exception:
        logger.exception("backup aborted by an unexpected error")
        return False

    if ok:
        logger.info("backup of %s completed and verified", transfer_info.file_path)
    else:
        logger.error("backup of %s failed", transfer_info.file_path)
    return ok


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="secure-backup", description="Encrypted file backup client.")
    p.add_argument("--config-dir", default=".",
                   help="directory holding transfer.info and me.info (default: current)")
    p.add_argument("--timeout", type=float, default=SOCKET_TIMEOUT,
                   help="per send/receive timeout in seconds, 0 to block forever")
    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = p.parse_args(argv)

    configure_logging(args.log_level)
    timeout = args.timeout if args.timeout > 0 else None
    return 0 if run_backup(Storage(args.config_dir), timeout=timeout) else 1


if __name__ == "__main__":
    raise SystemExit(main())
