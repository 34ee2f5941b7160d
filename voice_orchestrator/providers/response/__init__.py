from .openai_chat import OpenAIChatResponseProvider
from .echo import EchoResponseProvider

__all__ = ['OpenAIChatResponseProvider', 'EchoResponseProvider']
