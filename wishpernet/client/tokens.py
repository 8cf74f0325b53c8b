# Room Token Issuance Client
# Shape validation, local token generation, and the HTTP create/check calls

import asyncio
import logging
import re
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from wishpernet.common.errors import InvalidTokenError, TransportError

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-f0-9]{64}")
TOKEN_BYTES = 32  # 256 bits -> 64 hex chars


def is_valid_token_shape(token: Any) -> bool:
    """
    Check that `token` is exactly 64 lowercase hex characters.

    Must pass before a token is used for key derivation or sent anywhere.
    """
    return isinstance(token, str) and TOKEN_PATTERN.fullmatch(token) is not None


def require_valid_token(token: Any) -> str:
    """Return `token` unchanged, or raise InvalidTokenError."""
    if not is_valid_token_shape(token):
        raise InvalidTokenError("Invalid room token")
    return token


def generate_secure_token(nbytes: int = TOKEN_BYTES) -> str:
    """
    Generate a random lowercase hex token from the OS CSPRNG.

    Returns:
        2 * nbytes hex characters (64 for the default)
    """
    return secrets.token_hex(nbytes)


@dataclass
class RoomCheck:
    """Result of /api/check-room."""
    exists: bool
    primary_room_token: Optional[str] = None
    user_count: int = 0


class TokenIssuerClient:
    """
    Client for the server's room registry endpoints.

    Features:
    - GET /api/create-room -> new RoomToken
    - GET /api/check-room?token=T -> existence + canonical token

    Security:
    - Tokens failing the shape check are rejected before any request is made
    - Tokens returned by the server are shape-checked before being trusted
    - Tokens are never logged
    """

    def __init__(
        self,
        api_url: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0
    ):
        """
        Args:
            api_url: Base URL of the HTTP API (no trailing /api)
            session: Shared aiohttp session; a short-lived one is opened per
                request when omitted
            timeout: Total per-request timeout in seconds
        """
        self.api_url = api_url.rstrip("/")
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def request_new_room(self) -> str:
        """
        Ask the server to create a room.

        Returns:
            The new RoomToken

        Raises:
            InvalidTokenError: If the server returned a malformed token
            TransportError: On HTTP or connection failure
        """
        data = await self._get_json("/api/create-room")
        token = data.get("roomToken")
        if not is_valid_token_shape(token):
            raise InvalidTokenError("Server returned a malformed room token")
        logger.info("Created new room")
        return token

    async def check_room_exists(self, token: str) -> RoomCheck:
        """
        Validate a room or share token and resolve it to its canonical form.

        Raises:
            InvalidTokenError: If `token` fails the shape check (no request made)
            TransportError: On HTTP or connection failure
        """
        require_valid_token(token)
        data = await self._get_json("/api/check-room", params={"token": token})

        primary = data.get("primaryRoomToken")
        if primary is not None and not is_valid_token_shape(primary):
            logger.warning("Ignoring malformed primaryRoomToken from server")
            primary = None

        user_count = data.get("userCount", 0)
        if isinstance(user_count, bool) or not isinstance(user_count, int):
            user_count = 0

        return RoomCheck(
            exists=data.get("exists") is True,
            primary_room_token=primary,
            user_count=user_count,
        )

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if self.session is not None:
            return await self._fetch(self.session, path, params)
        async with aiohttp.ClientSession() as session:
            return await self._fetch(session, path, params)

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, str]]
    ) -> Dict[str, Any]:
        url = self.api_url + path
        try:
            async with session.get(url, params=params, timeout=self.timeout) as resp:
                if resp.status >= 400:
                    raise TransportError(f"{path} failed with HTTP {resp.status}")
                # Reference server answers with text/plain JSON bodies
                data = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise TransportError(f"{path} request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"{path} request timed out") from e
        except ValueError as e:
            raise TransportError(f"{path} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise TransportError(f"{path} returned unexpected payload")
        return data
