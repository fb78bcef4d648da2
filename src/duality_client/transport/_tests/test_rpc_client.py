from __future__ import annotations

import pytest

from duality_client._tests._helpers.fakes import FakeTransport
from duality_client.errors import NotFoundError, RemoteFetchError
from duality_client.transport.rpc import RpcClient


class _FlakyTransport(FakeTransport):
    def __init__(self) -> None:
        super().__init__()
        self.fail_next = False

    def receive(self):
        if self.fail_next:
            self.fail_next = False
            self._pending = None
            raise ConnectionResetError("peer went away")
        return super().receive()


def test_transport_is_created_lazily() -> None:
    created: list[FakeTransport] = []

    def factory() -> FakeTransport:
        created.append(FakeTransport())
        return created[-1]

    client = RpcClient(factory)
    assert created == []
    reply = client.call("download", {"path": "s/f"})
    client.call("download", {"path": "s/g"})
    assert len(created) == 1
    assert reply.payloads == (b"payload",)
    assert reply.single_payload("ctx") == b"payload"


@pytest.mark.parametrize("code", ["not_found", "NotFound", 404])
def test_not_found_codes(code) -> None:
    transport = FakeTransport(lambda method, params: ({"error": {"code": code, "message": "gone"}}, []))
    client = RpcClient(lambda: transport)
    with pytest.raises(NotFoundError, match="gone"):
        client.call("download", {"path": "s/f"})


def test_other_errors_are_remote_fetch_errors() -> None:
    transport = FakeTransport(lambda method, params: ({"error": "script crashed"}, []))
    client = RpcClient(lambda: transport)
    with pytest.raises(RemoteFetchError, match="script crashed") as excinfo:
        client.call("python", {})
    assert not isinstance(excinfo.value, NotFoundError)


def test_transport_failure_reconnects() -> None:
    created: list[_FlakyTransport] = []

    def factory() -> _FlakyTransport:
        created.append(_FlakyTransport())
        return created[-1]

    client = RpcClient(factory)
    client.call("listScenes")
    created[0].fail_next = True
    with pytest.raises(RemoteFetchError, match="transport failure"):
        client.call("listScenes")
    assert created[0].closed

    client.call("listScenes")
    assert len(created) == 2


def test_update_endpoint_swaps_factory() -> None:
    first = FakeTransport()
    second = FakeTransport()
    client = RpcClient(lambda: first)
    client.call("listScenes")
    client.update_endpoint(lambda: second)
    assert first.closed
    client.call("listScenes")
    assert second.counts["listScenes"] == 1


def test_missing_payload() -> None:
    client = RpcClient(lambda: FakeTransport(lambda method, params: ({}, [])))
    with pytest.raises(RemoteFetchError):
        client.call("download", {"path": "x"}).single_payload("download x")
