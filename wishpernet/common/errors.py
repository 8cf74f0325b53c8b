# Error Taxonomy
# Exceptions raised across the client core


class WishperNetError(Exception):
    """Base class for all client errors."""


class InvalidTokenError(WishperNetError, ValueError):
    """A room or share token failed the 64-char lowercase hex shape check."""


class RoomNotFoundError(WishperNetError):
    """The server reports that the room does not exist or has expired."""


class TransportError(WishperNetError):
    """HTTP or socket failure talking to the server."""
