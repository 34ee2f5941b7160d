"""
Pick the most natural available synthesis voice for a language.
"""

from typing import List, Optional, Sequence

from ..models.data_models import Voice


# Most natural first: neural "Online (Natural)" voices, then standard
# platform voices, then the widely available Google voices.
PREFERRED_VOICES = [
    "Microsoft Francisca Online (Natural)",
    "Microsoft Antonio Online (Natural)",
    "Microsoft Thalita Online (Natural)",
    "Microsoft Daniel",
    "Microsoft Maria",
    "Luciana",
    "Daniel",
    "Google português do Brasil",
    "Google português",
]


def select_preferred_voice(
    voices: Sequence[Voice],
    language: str = "pt-BR",
    preferred: Optional[List[str]] = None
) -> Optional[Voice]:
    """
    Choose a voice with a fixed fallback chain.

    Order: preferred names (case-insensitive substring, in list order), any
    "Natural" voice in the language family, exact language match, language
    family match, first voice.

    Args:
        voices: Voices reported by the engine
        language: BCP-47 language tag
        preferred: Preferred voice names; defaults to PREFERRED_VOICES

    Returns:
        Selected voice, or None if the engine offers none
    """
    if not voices:
        return None

    family = language.split("-")[0].lower()

    for name in (PREFERRED_VOICES if preferred is None else preferred):
        for voice in voices:
            if name.lower() in voice.name.lower():
                return voice

    for voice in voices:
        if "Natural" in voice.name and voice.lang.lower().startswith(family):
            return voice

    for voice in voices:
        if voice.lang.lower().replace("_", "-") == language.lower():
            return voice

    for voice in voices:
        if voice.lang.lower().startswith(family):
            return voice

    return voices[0]


def find_voice(voices: Sequence[Voice], name: str) -> Optional[Voice]:
    """Exact (case-insensitive) name lookup."""
    for voice in voices:
        if voice.name.lower() == name.lower():
            return voice
    return None
