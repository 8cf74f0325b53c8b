# Interactive Terminal Client
# Create or join a room and chat from the terminal

import argparse
import asyncio
import logging
import sys
import time
from typing import List, Optional

import aiohttp

from wishpernet.client.client_state import SessionStore
from wishpernet.client.connection import ConnectionController
from wishpernet.client.entry import RoomEntry
from wishpernet.client.share import parse_invite_link
from wishpernet.client.tokens import TokenIssuerClient
from wishpernet.client.transport import SocketIOTransport
from wishpernet.client.view import ChatView, DisplayedMessage, format_user_count
from wishpernet.common.errors import InvalidTokenError, RoomNotFoundError, TransportError
from wishpernet.config import ClientConfig

logger = logging.getLogger(__name__)

BANNER = """\
============================================================
             WISHPERNET ENCRYPTED ROOM CHAT
============================================================
Commands:
  /share    - Print an invite link for this room
  /leave    - Leave the room
  /quit     - Exit
Anything else is sent to the room.
============================================================"""


class ConsoleView(ChatView):
    """Prints chat activity to stdout."""

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdout
        self.left = False

    def _print(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def render_message(self, message: DisplayedMessage) -> None:
        stamp = time.strftime("%H:%M", time.localtime(message.timestamp / 1000))
        who = "you" if message.is_sent else message.username
        self._print(f"[{stamp}] {who}: {message.text}")

    def show_system_message(self, text: str) -> None:
        self._print(f"* {text}")

    def set_status(self, status: str) -> None:
        self._print(f"-- {status} --")

    def set_user_count(self, count: int) -> None:
        self._print(f"-- {format_user_count(count)} --")

    def set_send_enabled(self, enabled: bool) -> None:
        pass

    def alert(self, message: str) -> None:
        self._print(f"!! {message}")

    def notify_error(self, message: str) -> None:
        self._print(f"! {message}")

    def navigate_to_entry(self) -> None:
        self.left = True


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wishpernet",
        description="End-to-end encrypted room chat client",
    )
    parser.add_argument("--username", "-u", help="Display name (prompted if omitted)")
    parser.add_argument("--join", "-j", metavar="LINK",
                        help="Invite link or room token to join; creates a new room if omitted")
    parser.add_argument("--env-file", help="Path to a .env file with WISHPERNET_* settings")
    return parser.parse_args(argv)


async def _read_line(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, input, prompt)


async def chat(config: ClientConfig, username: str, join: Optional[str]) -> int:
    view = ConsoleView()
    store = SessionStore()

    async with aiohttp.ClientSession() as http:
        issuer = TokenIssuerClient(config.api_url, session=http, timeout=config.request_timeout)
        entry = RoomEntry(issuer, store)

        try:
            if join:
                await entry.join_existing_room(username, parse_invite_link(join))
            else:
                await entry.create_room(username)
        except InvalidTokenError:
            view.alert("Invalid room link. Please check the link and try again.")
            return 1
        except RoomNotFoundError as e:
            view.alert(str(e))
            return 1
        except TransportError as e:
            logger.error("Room entry failed: %s", e)
            view.alert("Failed to reach the server. Please try again.")
            return 1

        controller = ConnectionController(
            SocketIOTransport(), store, view, issuer, config=config,
        )
        if not await controller.start():
            return 1

        print(BANNER, flush=True)
        try:
            while not view.left:
                try:
                    line = await _read_line("> ")
                except EOFError:
                    break

                command = line.strip()
                if not command:
                    continue
                if command == "/quit":
                    break
                if command == "/leave":
                    await controller.leave()
                    break
                if command == "/share":
                    result = await controller.request_share_link()
                    if result.ok:
                        view.show_system_message(f"Invite link: {result.value}")
                    continue

                await controller.send_message(line)
        finally:
            if controller.transport.connected:
                await controller.transport.disconnect()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = ClientConfig.from_env(args.env_file)
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    username = args.username
    while not username or not username.strip():
        try:
            username = input("Enter your username: ")
        except EOFError:
            return 1

    try:
        return asyncio.run(chat(config, username.strip(), args.join))
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 130


if __name__ == "__main__":
    sys.exit(main())
