"""
Echo response provider for demos and offline runs.
"""

import asyncio
from typing import Any, Dict, Optional

from ...interfaces.response import ResponseInterface


class EchoResponseProvider(ResponseInterface):
    """Repeats the user's utterance back, optionally after a delay."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.prefix = config.get('prefix', 'Você disse: ')
        self.delay = config.get('delay', 0.0)
        self.turns = 0

    async def initialize(self) -> bool:
        return True

    async def respond(self, text: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.turns += 1
        return f"{self.prefix}{text}"

    def reset(self) -> None:
        self.turns = 0

    async def cleanup(self) -> None:
        pass
