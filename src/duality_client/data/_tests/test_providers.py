from __future__ import annotations

import pytest

from duality_client._tests._helpers.fakes import fake_rpc
from duality_client.data.providers import (
    DownloadIdentity,
    DownloadProvider,
    ParametrizedIdentity,
    ParametrizedProvider,
)
from duality_client.errors import RemoteFetchError
from duality_client.scene.variables import VariableRegistry


def _registry() -> VariableRegistry:
    registry = VariableRegistry()
    registry.add_node("n")
    registry.declare_float("n", "r", lower_bound=0.0, upper_bound=1.0, step_size=0.1, default_value=0.5)
    registry.declare_enum("n", "mode", values=["a", "b"], default_value="a")
    return registry


def test_download_identity_and_request() -> None:
    rpc, transport = fake_rpc(lambda method, params: ({}, [b"bytes"]))
    provider = DownloadProvider("scene", "mesh.g3d", rpc)

    assert provider.identity() == DownloadIdentity("scene", "mesh.g3d")
    assert provider.fetch() == b"bytes"
    assert transport.calls == [("download", {"path": "scene/mesh.g3d"})]


def test_reply_without_payload_is_an_error() -> None:
    rpc, _ = fake_rpc(lambda method, params: ({}, []))
    with pytest.raises(RemoteFetchError):
        DownloadProvider("scene", "mesh.g3d", rpc).fetch()


def test_parametrized_identity_tracks_registry() -> None:
    registry = _registry()
    rpc, _ = fake_rpc()
    provider = ParametrizedProvider("scene", "gen.py", rpc, registry, "n")

    before = provider.identity()
    assert before == ParametrizedIdentity("scene", "gen.py", (("r", 0.5), ("mode", "a")))
    registry.set_variable("n", "r", 0.7)
    after = provider.identity()

    assert after != before
    assert after.snapshot == (("r", 0.7), ("mode", "a"))


def test_parametrized_fetch_uses_pinned_snapshot() -> None:
    registry = _registry()
    rpc, transport = fake_rpc()
    provider = ParametrizedProvider("scene", "gen.py", rpc, registry, "n")
    pinned = provider.identity()
    registry.set_variable("n", "mode", "b")

    provider.fetch(pinned)

    method, params = transport.calls[-1]
    assert method == "python"
    assert params == {"scene": "scene", "filename": "gen.py", "variables": {"r": 0.5, "mode": "a"}}


def test_cache_keys_are_distinct_per_kind() -> None:
    download = DownloadIdentity("s", "f")
    parametrized = ParametrizedIdentity("s", "f", ())
    assert download.cache_key() != parametrized.cache_key()
    assert ParametrizedIdentity("s", "f", (("r", 0.5),)).cache_key() != ParametrizedIdentity(
        "s", "f", (("r", 0.7),)
    ).cache_key()
