"""Optional persistent storage behind the data cache.

Stored records carry the full identity key next to the payload; a record is
only returned when its key matches the requested identity exactly.
"""

from __future__ import annotations

import hashlib
import logging
import os
import struct
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from .providers import ProviderIdentity

logger = logging.getLogger(__name__)

_MAGIC = b"DCE1"
_HEADER = struct.Struct("<4sI")


class CacheStore(Protocol):
    def load(self, identity: ProviderIdentity) -> Optional[bytes]: ...

    def save(self, identity: ProviderIdentity, payload: bytes) -> None: ...

    def clear(self) -> None: ...


class DirectoryCacheStore:
    """One file per identity under *root*, named by the hash of its key."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.root / f"{digest}.bin"

    def load(self, identity: ProviderIdentity) -> Optional[bytes]:
        key = identity.cache_key()
        path = self._path(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        if len(data) < _HEADER.size:
            logger.warning("discarding truncated cache record %s", path.name)
            path.unlink(missing_ok=True)
            return None
        magic, key_len = _HEADER.unpack_from(data, 0)
        stored_key = data[_HEADER.size:_HEADER.size + key_len].decode("utf-8", errors="replace")
        if magic != _MAGIC or stored_key != key:
            logger.warning("discarding cache record %s: identity mismatch", path.name)
            path.unlink(missing_ok=True)
            return None
        return data[_HEADER.size + key_len:]

    def save(self, identity: ProviderIdentity, payload: bytes) -> None:
        key = identity.cache_key().encode("utf-8")
        path = self._path(identity.cache_key())
        fd, tmp_name = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(_HEADER.pack(_MAGIC, len(key)))
                fh.write(key)
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        for path in self.root.glob("*.bin"):
            path.unlink(missing_ok=True)


__all__ = ["CacheStore", "DirectoryCacheStore"]
