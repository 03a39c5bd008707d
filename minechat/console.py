from __future__ import annotations
from typing import Optional

from aioconsole import ainput
from rich.console import Console

from shared.errors import TransportError


class ChatDisplay:
    """Everything the session shows to the user goes through here."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def _plain(self, text: str) -> None:
        # Chat text is user content: no markup, emoji or highlighting
        self.console.print(text, markup=False, emoji=False, highlight=False, soft_wrap=True)

    def broadcast(self, sender_name: str, text: str) -> None:
        self._plain(f"[{sender_name}] {text}")

    def disconnected(self, reason: str) -> None:
        self._plain(f"Disconnected: {reason}")


class ConsoleInput:
    """Interactive line source over stdin; readline() returns None at EOF."""

    def __init__(self, prompt: str = "") -> None:
        self.prompt = prompt

    async def readline(self) -> Optional[str]:
        try:
            return await ainput(self.prompt)
        except EOFError:
            return None
        except OSError as e:
            raise TransportError(f"Failed to read from stdin: {e}")
