"""Websocket adapter for the RPC transport contract.

Requests are a single JSON text frame ``{"method", "params"}``. A reply is a
JSON text frame ``{"result", "payloads": n}`` followed by ``n`` binary frames.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import ClientConnection, connect

from duality_client.errors import RemoteFetchError

logger = logging.getLogger(__name__)


class WebSocketTransport:
    def __init__(self, url: str, *, timeout_s: float = 10.0) -> None:
        self.url = url
        self.timeout_s = float(timeout_s)
        self._conn: Optional[ClientConnection] = None

    def _connection(self) -> ClientConnection:
        if self._conn is None:
            logger.info("connecting to %s", self.url)
            self._conn = connect(self.url, open_timeout=self.timeout_s, max_size=None)
        return self._conn

    def send(self, method: str, params: Mapping[str, Any] | None) -> None:
        message = json.dumps({"method": method, "params": dict(params or {})})
        try:
            self._connection().send(message)
        except ConnectionClosed as exc:
            self._conn = None
            raise RemoteFetchError(f"connection to {self.url} closed") from exc

    def receive(self) -> tuple[Any, Sequence[bytes]]:
        conn = self._connection()
        try:
            header = conn.recv(timeout=self.timeout_s)
            if not isinstance(header, str):
                raise RemoteFetchError("expected JSON reply header, got binary frame")
            try:
                reply = json.loads(header)
            except json.JSONDecodeError as exc:
                raise RemoteFetchError(f"malformed reply header: {exc}") from exc
            if not isinstance(reply, Mapping):
                raise RemoteFetchError("reply header must be an object")
            count = int(reply.get("payloads", 0) or 0)
            payloads: list[bytes] = []
            for _ in range(count):
                frame = conn.recv(timeout=self.timeout_s)
                if isinstance(frame, str):
                    raise RemoteFetchError("expected binary payload frame, got text")
                payloads.append(bytes(frame))
        except ConnectionClosed as exc:
            self._conn = None
            raise RemoteFetchError(f"connection to {self.url} closed") from exc
        except TimeoutError as exc:
            raise RemoteFetchError(f"timed out waiting for reply from {self.url}") from exc
        return reply.get("result"), payloads

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()


__all__ = ["WebSocketTransport"]
