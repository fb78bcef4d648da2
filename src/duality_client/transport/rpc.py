"""Send/receive RPC contract and a lazily connected, serialized client."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from duality_client.errors import NotFoundError, RemoteFetchError
from duality_client.utils.debug_logging import enable_debug_logger

logger = logging.getLogger(__name__)
_RPC_DEBUG = enable_debug_logger(logger, "DUALITY_RPC_DEBUG")

LIST_SCENES_METHOD = "listScenes"
DOWNLOAD_METHOD = "download"
PYTHON_METHOD = "python"

_NOT_FOUND_CODES = {"not_found", "notfound", "404"}


class RpcTransport(Protocol):
    """External collaborator: one request/reply endpoint."""

    def send(self, method: str, params: Mapping[str, Any] | None) -> None: ...

    def receive(self) -> tuple[Any, Sequence[bytes]]: ...

    def close(self) -> None: ...


TransportFactory = Callable[[], RpcTransport]


@dataclass(frozen=True)
class RpcReply:
    result: Any
    payloads: tuple[bytes, ...]

    def single_payload(self, context: str) -> bytes:
        if not self.payloads:
            raise RemoteFetchError(f"{context}: reply carried no binary payload")
        return self.payloads[0]


def _check_error(method: str, result: Any) -> None:
    if not isinstance(result, Mapping):
        return
    error = result.get("error")
    if error is None:
        return
    if isinstance(error, Mapping):
        code = str(error.get("code", "")).strip().lower()
        message = str(error.get("message", code or "server error"))
    else:
        code = ""
        message = str(error)
    if code in _NOT_FOUND_CODES:
        raise NotFoundError(f"{method}: {message}")
    raise RemoteFetchError(f"{method}: {message}")


class RpcClient:
    """Serialize send/receive pairs on one shared transport.

    The transport is created by *factory* on first use and recreated after
    ``update_endpoint`` or a transport failure.
    """

    def __init__(self, factory: TransportFactory) -> None:
        self._factory = factory
        self._transport: Optional[RpcTransport] = None
        self._lock = threading.Lock()

    def update_endpoint(self, factory: TransportFactory) -> None:
        with self._lock:
            self._drop_locked()
            self._factory = factory

    def call(self, method: str, params: Mapping[str, Any] | None = None) -> RpcReply:
        with self._lock:
            try:
                if self._transport is None:
                    self._transport = self._factory()
                transport = self._transport
                if _RPC_DEBUG:
                    logger.debug("rpc send: method=%s params=%s", method, dict(params or {}))
                transport.send(method, params)
                result, payloads = transport.receive()
            except RemoteFetchError:
                self._drop_locked()
                raise
            except Exception as exc:
                self._drop_locked()
                raise RemoteFetchError(f"{method}: transport failure: {exc}") from exc
        _check_error(method, result)
        reply = RpcReply(result=result, payloads=tuple(bytes(p) for p in payloads))
        if _RPC_DEBUG:
            logger.debug("rpc reply: method=%s payloads=%d", method, len(reply.payloads))
        return reply

    def close(self) -> None:
        with self._lock:
            self._drop_locked()

    def _drop_locked(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception:
            logger.debug("transport close failed", exc_info=True)


__all__ = [
    "DOWNLOAD_METHOD",
    "LIST_SCENES_METHOD",
    "PYTHON_METHOD",
    "RpcClient",
    "RpcReply",
    "RpcTransport",
    "TransportFactory",
]
