"""Loading of RPC certificates."""

from __future__ import annotations

import binascii
from pathlib import Path
from typing import Union


def read_cert_file(raw_cert: str, cert_file_path: Union[str, Path]) -> bytes:
    """Return certificate bytes from a hex string, or else from a file.

    A non-empty ``raw_cert`` takes precedence; it must be plain hex.
    """
    if raw_cert:
        try:
            return binascii.unhexlify(raw_cert)
        except binascii.Error as exc:
            raise ValueError(f"invalid hex certificate: {exc}") from exc
    return Path(cert_file_path).read_bytes()