"""
Accumulates finalized speech fragments for the current user turn.
"""


class TranscriptAccumulator:
    """Append-only utterance plus the latest interim hypothesis."""

    def __init__(self):
        self._utterance = ""
        self._interim = ""

    @property
    def text(self) -> str:
        """Finalized text for the current turn."""
        return self._utterance

    @property
    def interim(self) -> str:
        return self._interim

    @property
    def is_empty(self) -> bool:
        return not self._utterance.strip() and not self._interim.strip()

    def append_final(self, fragment: str) -> str:
        """
        Append a final fragment, space-separated from earlier ones.

        Args:
            fragment: Stable text from the engine

        Returns:
            The full accumulated utterance
        """
        fragment = (fragment or "").strip()
        if not fragment:
            return self._utterance
        if self._utterance:
            self._utterance += " " + fragment
        else:
            self._utterance = fragment
        return self._utterance

    def set_interim(self, text: str) -> None:
        self._interim = (text or "").strip()

    def snapshot(self) -> str:
        """Utterance followed by the interim hypothesis, for live display."""
        if self._utterance and self._interim:
            return f"{self._utterance} {self._interim}"
        return self._utterance or self._interim

    def reset(self) -> None:
        self._utterance = ""
        self._interim = ""
