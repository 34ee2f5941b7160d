"""
Console logging for the voice orchestrator.

Every record carries the component that produced it and, while a call is
active, the call id and turn state, so interleaved engine callbacks can be
read back as one conversation:

    [12:00:01.250] [ℹ️  INFO ] [coordinator ] [call 2 · listening] 💬 User: oi
"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple


LOGGER_NAME = 'voice_orchestrator'

# Libraries that log every websocket frame or HTTP request at INFO
NOISY_LIBRARIES = ('aiohttp', 'openai', 'httpx', 'httpcore', 'comtypes')

_call_context: ContextVar[Optional[Tuple[int, str]]] = ContextVar('call_context', default=None)


def set_call_context(call_id: Optional[int], state: str = "") -> None:
    """Tag subsequent records with a call id and turn state (None clears)."""
    _call_context.set((call_id, state) if call_id is not None else None)


class CallContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = _call_context.get()
        if context is None:
            record.call = ""
        else:
            call_id, state = context
            record.call = f"call {call_id} · {state}" if state else f"call {call_id}"
        if not hasattr(record, 'component'):
            record.component = record.name.rsplit('.', 1)[-1]
        return True


class TurnFormatter(logging.Formatter):
    """Single-line formatter with level badge, component and call tag."""

    LEVEL_COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    LEVEL_BADGES = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️ ',
        'WARNING': '⚠️ ',
        'ERROR': '❌',
        'CRITICAL': '💀',
    }

    def __init__(self, use_colors: bool = True, use_emojis: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()
        self.use_emojis = use_emojis

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        level = record.levelname
        badge = f"{self.LEVEL_BADGES.get(level, '')} {level:<7}" if self.use_emojis else f"{level:<7}"
        if self.use_colors:
            badge = f"{self.LEVEL_COLORS.get(level, '')}{badge}{self.RESET}"

        line = f"[{clock}] [{badge}] [{getattr(record, 'component', '-'):<12}]"
        call = getattr(record, 'call', "")
        if call:
            line += f" [{call}]"
        line += f" {record.getMessage()}"

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


class ComponentLogger:
    """Thin wrapper that stamps a component name on every record."""

    def __init__(self, logger: logging.Logger, component: str):
        self.logger = logger
        self.component = component

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = dict(kwargs.pop('extra', None) or {})
        extra['component'] = self.component
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs['exc_info'] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
    use_emojis: bool = True,
    quiet_libraries: bool = True
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that also receives every record, uncoloured
        use_colors: ANSI colours on a terminal
        use_emojis: Emoji level badges
        quiet_libraries: Raise third-party network loggers to WARNING

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    context_filter = CallContextFilter()

    console = logging.StreamHandler(sys.stdout)
    console.addFilter(context_filter)
    console.setFormatter(TurnFormatter(use_colors=use_colors, use_emojis=use_emojis))
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(TurnFormatter(use_colors=False, use_emojis=False))
        logger.addHandler(file_handler)

    if quiet_libraries:
        for name in NOISY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(component: str) -> ComponentLogger:
    """
    Get the logger for one component.

    Args:
        component: Short name shown in the component column ("recognition", "speech", ...)
    """
    return ComponentLogger(logging.getLogger(LOGGER_NAME), component)
