"""Environment-derived configuration for the rig control client."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from synthrig.utils.env import env_bool, env_float, env_int, env_str

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3000
DEFAULT_WS_PATH = "/ws"
DEFAULT_REQUEST_TIMEOUT_MS = 1000
LONG_REQUEST_TIMEOUT_MS = 30000
DEFAULT_RECONNECT_DELAY_S = 1.0


@dataclass(frozen=True)
class ClientConfig:
    """Resolved connection and timing settings for ``RigClient``."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    ws_path: str = DEFAULT_WS_PATH
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    long_request_timeout_ms: int = LONG_REQUEST_TIMEOUT_MS
    reconnect_delay_s: float = DEFAULT_RECONNECT_DELAY_S
    reset_pending_on_reconnect: bool = True

    @property
    def url(self) -> str:
        path = self.ws_path if self.ws_path.startswith("/") else f"/{self.ws_path}"
        return f"ws://{self.host}:{self.port}{path}"

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """Return a copy with every non-``None`` override applied."""

        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values) if values else self


def load_client_config(**overrides: Any) -> ClientConfig:
    """Resolve ``SYNTHRIG_*`` environment variables into a ``ClientConfig``.

    Keyword overrides (for example parsed CLI flags) win over the environment;
    ``None`` overrides are ignored.
    """

    config = ClientConfig(
        host=env_str("SYNTHRIG_HOST", DEFAULT_HOST) or DEFAULT_HOST,
        port=env_int("SYNTHRIG_PORT", DEFAULT_PORT, minimum=1, maximum=65535),
        ws_path=env_str("SYNTHRIG_WS_PATH", DEFAULT_WS_PATH) or DEFAULT_WS_PATH,
        request_timeout_ms=env_int("SYNTHRIG_REQUEST_TIMEOUT_MS", DEFAULT_REQUEST_TIMEOUT_MS, minimum=1),
        long_request_timeout_ms=env_int("SYNTHRIG_LONG_REQUEST_TIMEOUT_MS", LONG_REQUEST_TIMEOUT_MS, minimum=1),
        reconnect_delay_s=env_float("SYNTHRIG_RECONNECT_DELAY_S", DEFAULT_RECONNECT_DELAY_S, minimum=0.0),
        reset_pending_on_reconnect=env_bool("SYNTHRIG_RESET_PENDING_ON_RECONNECT", True),
    )
    return config.with_overrides(**overrides)
