# Share Token Flow
# Invite tokens via a single-shot acknowledged request, and invite links

import logging
from urllib.parse import parse_qs, urlsplit

from wishpernet.client.tokens import is_valid_token_shape, require_valid_token
from wishpernet.client.transport import Transport
from wishpernet.common.errors import InvalidTokenError, TransportError
from wishpernet.common.protocol import Event, ShareTokenRequest
from wishpernet.common.result import Failure, Result, Success

logger = logging.getLogger(__name__)

INVITE_PAGE = "index.html"


def build_invite_link(origin: str, share_token: str) -> str:
    """Invite URL carrying the share token as the `token` query parameter."""
    require_valid_token(share_token)
    return f"{origin.rstrip('/')}/{INVITE_PAGE}?token={share_token}"


def parse_invite_link(link: str) -> str:
    """
    Extract the token from an invite link, or accept a bare token.

    Raises:
        InvalidTokenError: If no well-formed token is present
    """
    link = link.strip()
    if is_valid_token_shape(link):
        return link

    values = parse_qs(urlsplit(link).query).get("token", [])
    if len(values) != 1 or not is_valid_token_shape(values[0]):
        raise InvalidTokenError("Invalid room link")
    return values[0]


class ShareFlow:
    """
    Obtains a share token that the server maps to the same room.

    The request is answered through an acknowledgement addressed to this
    caller, never through a room broadcast. The share token only ever ends
    up in a link; key derivation always uses the canonical room token.
    """

    def __init__(self, transport: Transport, timeout: float = 10.0):
        self.transport = transport
        self.timeout = timeout

    async def request_share_token(self, room_token: str) -> Result[str]:
        """
        Ask the server for a fresh share token for `room_token`.

        Returns:
            Success(share_token) or Failure(reason)
        """
        if not is_valid_token_shape(room_token):
            return Failure("invalid room token")

        request = ShareTokenRequest(room_token=room_token)
        try:
            share_token = await self.transport.call(
                Event.GENERATE_SHARE_TOKEN.value,
                request.to_payload(),
                timeout=self.timeout,
            )
        except TransportError as e:
            logger.warning("Share token request failed: %s", e)
            return Failure("share token request failed")

        if share_token is None:
            return Failure("server refused to issue a share token")
        if not is_valid_token_shape(share_token):
            logger.warning("Server returned a malformed share token")
            return Failure("server returned a malformed share token")
        return Success(share_token)
