# Client Configuration
# Server endpoints, timeouts and log level, read from the environment / .env

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_SOCKET_URL = "http://localhost:3000"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class ClientConfig:
    """
    Where the client talks to and how long it waits.

    Fields:
    - api_url: Base URL for /api/create-room and /api/check-room
    - socket_url: Socket.IO endpoint for the live connection
    - public_origin: Origin used when building invite links
    - request_timeout: HTTP timeout (seconds)
    - share_timeout: Wait for the share-token acknowledgement (seconds)
    - log_level: Name of the logging level for the CLI
    """
    api_url: str = DEFAULT_API_URL
    socket_url: str = DEFAULT_SOCKET_URL
    public_origin: Optional[str] = None
    request_timeout: float = 10.0
    share_timeout: float = 10.0
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.public_origin is None:
            self.public_origin = self.api_url

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'ClientConfig':
        """
        Build the config from WISHPERNET_* variables.

        A .env file is loaded first; variables already set in the
        environment take precedence over it.

        Raises:
            ValueError: If a timeout is not a positive number
        """
        load_dotenv(dotenv_path)
        api_url = os.getenv("WISHPERNET_API_URL", DEFAULT_API_URL)
        return cls(
            api_url=api_url,
            socket_url=os.getenv("WISHPERNET_SOCKET_URL", DEFAULT_SOCKET_URL),
            public_origin=os.getenv("WISHPERNET_PUBLIC_ORIGIN") or api_url,
            request_timeout=_float_env("WISHPERNET_REQUEST_TIMEOUT", 10.0),
            share_timeout=_float_env("WISHPERNET_SHARE_TIMEOUT", 10.0),
            log_level=os.getenv("WISHPERNET_LOG_LEVEL", "WARNING").upper(),
        )
