"""
OpenAI chat completions response provider.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from ...interfaces.response import ResponseInterface
from ...models.data_models import ConversationMessage, MessageRole
from ...utils.logging_config import get_logger


logger = get_logger("openai_chat")

DEFAULT_SYSTEM_PROMPT = (
    "Você é a Monalisa, uma assistente virtual pessoal. "
    "Responda em português do Brasil, de forma breve e natural, "
    "pois suas respostas serão faladas em voz alta."
)


class OpenAIChatResponseProvider(ResponseInterface):
    """Replies with OpenAI chat completions, keeping a bounded history."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize OpenAI chat provider.

        Args:
            config: Configuration dictionary containing:
                - api_key: OpenAI API key
                - model: Chat model (default: "gpt-4o-mini")
                - max_tokens: Maximum tokens per reply
                - temperature: Sampling temperature
                - system_prompt: Persona prompt
                - max_history_messages: Messages kept besides the system prompt
                - timeout: Request timeout in seconds
        """
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("OpenAI API key is required")

        self.model = config.get('model', 'gpt-4o-mini')
        self.max_tokens = config.get('max_tokens', 400)
        self.temperature = config.get('temperature', 0.7)
        self.system_prompt = config.get('system_prompt') or DEFAULT_SYSTEM_PROMPT
        self.max_history_messages = config.get('max_history_messages', 20)
        self.timeout = config.get('timeout', 30.0)

        self.client: Optional[AsyncOpenAI] = None
        self.history: List[ConversationMessage] = []

    async def initialize(self) -> bool:
        try:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
            logger.info(f"✅ OpenAI chat ready ({self.model})")
            return True
        except Exception as e:
            logger.error(f"❌ Failed to initialize OpenAI client: {e}")
            return False

    def _build_messages(self) -> List[Dict[str, str]]:
        messages = [{'role': MessageRole.SYSTEM.value, 'content': self.system_prompt}]
        messages.extend(m.to_dict() for m in self.history)
        return messages

    def _trim_history(self) -> None:
        if self.max_history_messages and len(self.history) > self.max_history_messages:
            self.history = self.history[-self.max_history_messages:]

    async def respond(self, text: str) -> str:
        if self.client is None:
            await self.initialize()

        self.history.append(ConversationMessage(role=MessageRole.USER, content=text))
        self._trim_history()

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception:
            # Keep history consistent: the turn never happened
            self.history.pop()
            raise

        reply = (completion.choices[0].message.content or "").strip()
        self.history.append(ConversationMessage(role=MessageRole.ASSISTANT, content=reply))
        self._trim_history()
        return reply

    def reset(self) -> None:
        self.history.clear()

    async def cleanup(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
