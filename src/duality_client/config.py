"""Runtime configuration for the scene client.

A single ``ClientConfig`` collects the endpoint, cache and fetch knobs that
the loader and data layer consume. Values come from ``DUALITY_*`` environment
variables with conservative defaults.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from duality_client.utils.env import env_choice, env_float, env_int, env_path, env_str

RELOAD_REUSE = "reuse"
RELOAD_REFETCH = "refetch"
RELOAD_POLICIES = (RELOAD_REUSE, RELOAD_REFETCH)


@dataclass
class ClientConfig:
    server_host: str = "127.0.0.1"
    server_port: int = 10123
    rpc_timeout_s: float = 10.0
    cache_dir: Optional[Path] = None
    fetch_workers: int = 2
    # "reuse" keeps payloads of unchanged files across scene loads,
    # "refetch" clears the cache on every load.
    reload_policy: str = RELOAD_REUSE

    def __post_init__(self) -> None:
        if self.reload_policy not in RELOAD_POLICIES:
            raise ValueError(f"reload_policy must be one of {RELOAD_POLICIES}, got {self.reload_policy!r}")
        if self.fetch_workers < 1:
            raise ValueError("fetch_workers must be >= 1")

    def endpoint_url(self) -> str:
        return f"ws://{self.server_host}:{int(self.server_port)}"

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["cache_dir"] = str(self.cache_dir) if self.cache_dir is not None else None
        return data

    @staticmethod
    def from_env() -> "ClientConfig":
        return ClientConfig(
            server_host=env_str("DUALITY_SERVER_HOST", "127.0.0.1") or "127.0.0.1",
            server_port=env_int("DUALITY_SERVER_PORT", 10123),
            rpc_timeout_s=env_float("DUALITY_RPC_TIMEOUT_S", 10.0),
            cache_dir=env_path("DUALITY_CACHE_DIR"),
            fetch_workers=env_int("DUALITY_FETCH_WORKERS", 2, minimum=1),
            reload_policy=env_choice("DUALITY_RELOAD_POLICY", RELOAD_POLICIES, RELOAD_REUSE),
        )


__all__ = ["ClientConfig", "RELOAD_POLICIES", "RELOAD_REFETCH", "RELOAD_REUSE"]
