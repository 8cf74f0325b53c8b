# Chat Rendering Seam
# What the connection controller needs from whatever displays the chat

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DisplayedMessage:
    """
    One message ready for rendering.

    `text` is the decrypted plaintext, or the failure placeholder when
    `decrypted` is False.
    """
    message_id: str
    username: str
    text: str
    timestamp: int
    is_sent: bool
    decrypted: bool = True


def format_user_count(count: int) -> str:
    return f"{count} user{'' if count == 1 else 's'} online"


class ChatView(ABC):
    """
    Display and navigation surface.

    Every user-facing notification from the client core goes through
    `alert` (blocking problems) or `notify_error` (non-fatal faults).
    """

    @abstractmethod
    def render_message(self, message: DisplayedMessage) -> None:
        """Append a chat message in delivery order."""

    @abstractmethod
    def show_system_message(self, text: str) -> None:
        """Append a membership/system line."""

    @abstractmethod
    def set_status(self, status: str) -> None:
        """Connection status text ("Connected" / "Disconnected")."""

    @abstractmethod
    def set_user_count(self, count: int) -> None:
        """Number of users currently in the room."""

    @abstractmethod
    def set_send_enabled(self, enabled: bool) -> None:
        """Enable or disable the send affordance."""

    @abstractmethod
    def alert(self, message: str) -> None:
        """Show a problem the user must see."""

    @abstractmethod
    def notify_error(self, message: str) -> None:
        """Report a non-fatal fault (malformed server event, failed request)."""

    @abstractmethod
    def navigate_to_entry(self) -> None:
        """Leave the chat and return to the create/join entry point."""
