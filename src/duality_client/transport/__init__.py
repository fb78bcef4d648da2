"""RPC transport used to list scenes and fetch dataset payloads."""

from __future__ import annotations

from .rpc import RpcClient, RpcReply, RpcTransport

__all__ = ["RpcClient", "RpcReply", "RpcTransport", "WebSocketTransport"]


def __getattr__(name: str):
    if name == "WebSocketTransport":
        from .websocket import WebSocketTransport

        return WebSocketTransport
    raise AttributeError(name)
