from __future__ import annotations

import json
import threading

import pytest

pytest.importorskip("websockets")

from websockets.sync.server import serve  # noqa: E402

from duality_client.errors import NotFoundError, RemoteFetchError  # noqa: E402
from duality_client.transport.rpc import RpcClient  # noqa: E402
from duality_client.transport.websocket import WebSocketTransport  # noqa: E402


def _handler(conn) -> None:
    for message in conn:
        request = json.loads(message)
        method = request["method"]
        if method == "download":
            conn.send(json.dumps({"result": {}, "payloads": 1}))
            conn.send(b"bytes:" + request["params"]["path"].encode())
        elif method == "listScenes":
            conn.send(json.dumps({"result": [{"metadata": {"name": "a"}, "scene": []}], "payloads": 0}))
        else:
            conn.send(json.dumps({"result": {"error": {"code": "not_found", "message": "nope"}}, "payloads": 0}))


@pytest.fixture
def server_url():
    with serve(_handler, "127.0.0.1", 0) as server:
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        port = server.socket.getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


def test_request_reply_with_binary_payload(server_url) -> None:
    transport = WebSocketTransport(server_url, timeout_s=5.0)
    try:
        transport.send("download", {"path": "s/mesh.g3d"})
        result, payloads = transport.receive()
    finally:
        transport.close()
    assert result == {}
    assert payloads == [b"bytes:s/mesh.g3d"]


def test_rpc_client_over_websocket(server_url) -> None:
    client = RpcClient(lambda: WebSocketTransport(server_url, timeout_s=5.0))
    try:
        scenes = client.call("listScenes").result
        assert scenes[0]["metadata"]["name"] == "a"
        with pytest.raises(NotFoundError):
            client.call("python", {"scene": "a", "filename": "gen.py", "variables": {}})
        assert client.call("download", {"path": "a/f"}).single_payload("download") == b"bytes:a/f"
    finally:
        client.close()


def test_unreachable_server_is_remote_fetch_error() -> None:
    client = RpcClient(lambda: WebSocketTransport("ws://127.0.0.1:9", timeout_s=1.0))
    with pytest.raises(RemoteFetchError):
        client.call("listScenes")
