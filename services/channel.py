"""Outbound message channels."""
import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)


class OutboundChannel:
    """Delivers text to a user. Implementations raise on failure."""

    def send(self, identity: str, text: str) -> None:
        raise NotImplementedError


class ConsoleChannel(OutboundChannel):
    """Prints replies; used by the interactive console."""

    def __init__(self, speaker: str = "Aliya"):
        self.speaker = speaker

    def send(self, identity: str, text: str) -> None:
        print(f"{self.speaker}: {text}")


class RecordingChannel(OutboundChannel):
    """Keeps every sent message in memory."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send(self, identity: str, text: str) -> None:
        self.sent.append((identity, text))

    def messages_for(self, identity: str) -> List[str]:
        return [text for who, text in self.sent if who == identity]
