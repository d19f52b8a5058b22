"""Encrypted file backup client.

Registers with (or reconnects to) a backup server, receives an AES key over
an RSA handshake and uploads one file, confirming the server's checksum.
"""

__version__ = "1.0.0"
