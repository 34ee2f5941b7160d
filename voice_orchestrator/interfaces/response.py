"""
Abstract interface for response backends.
"""

from abc import ABC, abstractmethod


class ResponseInterface(ABC):
    """Abstract base class for backends that turn committed text into a reply."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the backend and any required connections.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def respond(self, text: str) -> str:
        """
        Produce the reply for one committed user utterance.

        Args:
            text: The committed user utterance

        Returns:
            Reply text to be spoken

        Raises:
            Exception: Any failure aborts the current turn
        """
        pass

    def reset(self) -> None:
        """Forget conversation state (called when a call ends)."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the backend."""
        pass
