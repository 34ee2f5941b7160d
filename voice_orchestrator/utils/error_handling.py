"""
Structured error handling for the turn-taking components.

Nothing in this subsystem is fatal: the worst outcome is an aborted turn or a
stopped recognition engine that the user can restart.
"""

import time
import traceback
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Callable, Deque, Dict, Any, List

from .logging_config import get_logger


logger = get_logger("errors")


class ErrorSeverity(Enum):
    """How far an error reaches."""
    TRANSIENT = "transient"        # Expected noise, absorbed
    RECOVERABLE = "recoverable"    # Engine failure, call stays active
    BACKEND = "backend"            # Reply generation failed, turn aborted
    CONTRACT = "contract"          # Caller misuse, logged no-op


_LOG_LEVELS = {
    ErrorSeverity.TRANSIENT: ("debug", ""),
    ErrorSeverity.CONTRACT: ("warning", "🚫 "),
    ErrorSeverity.RECOVERABLE: ("warning", "🔧 "),
    ErrorSeverity.BACKEND: ("error", "❌ "),
}


@dataclass
class ComponentError:
    """One failure reported by a session, engine adapter or the coordinator."""
    component: str
    severity: ErrorSeverity
    message: str
    exception: Optional[BaseException] = None
    kind: Optional[str] = None  # Engine error kind, e.g. "network"
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    traceback_str: Optional[str] = None

    def __post_init__(self):
        if self.exception is not None and self.traceback_str is None:
            self.traceback_str = "".join(
                traceback.TracebackException.from_exception(self.exception).format()
            )

    @property
    def is_user_visible(self) -> bool:
        return self.severity in (ErrorSeverity.RECOVERABLE, ErrorSeverity.BACKEND)

    def describe(self) -> str:
        suffix = f" [{self.kind}]" if self.kind else ""
        return f"{self.component}: {self.message}{suffix}"


class ErrorHandler:
    """
    Shared sink for component errors.

    Features:
    - Severity-based logging
    - Listener notification (for surfacing notices upward)
    - Bounded error history
    """

    def __init__(self, max_history: int = 100):
        self._history: Deque[ComponentError] = deque(maxlen=max_history)
        self._listeners: List[Callable[[ComponentError], None]] = []

    def add_listener(self, listener: Callable[[ComponentError], None]) -> None:
        """
        Register a callback invoked for every handled error.

        Args:
            listener: Function that takes the ComponentError
        """
        self._listeners.append(listener)

    def handle_error(self, error: ComponentError) -> bool:
        """
        Record, log and broadcast an error.

        Args:
            error: Error to handle

        Returns:
            True if the caller can carry on as normal (transient or contract
            errors), False if the error changed component state
        """
        self._history.append(error)

        method, prefix = _LOG_LEVELS[error.severity]
        getattr(logger, method)(f"{prefix}{error.describe()}")
        if error.exception is not None and error.severity != ErrorSeverity.TRANSIENT:
            logger.debug(f"   Exception: {error.exception!r}")

        for listener in list(self._listeners):
            try:
                listener(error)
            except Exception as e:
                logger.warning(f"⚠️  Error listener failed: {e}")

        return error.severity in (ErrorSeverity.TRANSIENT, ErrorSeverity.CONTRACT)

    def get_error_history(
        self,
        component: Optional[str] = None,
        severity: Optional[ErrorSeverity] = None
    ) -> List[ComponentError]:
        """
        Recorded errors, oldest first.

        Args:
            component: Only errors from this component
            severity: Only errors of this severity
        """
        return [
            e for e in self._history
            if (component is None or e.component == component)
            and (severity is None or e.severity == severity)
        ]

    def get_error_summary(self) -> Dict[str, Any]:
        """Counts by severity and component, plus the last error a user would have seen."""
        visible = [e for e in self._history if e.is_user_visible]
        return {
            'total_errors': len(self._history),
            'by_severity': dict(Counter(e.severity.value for e in self._history)),
            'by_component': dict(Counter(e.component for e in self._history)),
            'last_user_visible': visible[-1].describe() if visible else None,
        }


def safe_cleanup(*cleanup_funcs: Callable[[], Any]) -> List[tuple]:
    """
    Run every cleanup step even if some fail.

    Args:
        *cleanup_funcs: Synchronous cleanup callables

    Returns:
        (name, exception) for each step that failed
    """
    failures = []
    for step in cleanup_funcs:
        try:
            step()
        except Exception as e:
            name = getattr(step, '__name__', repr(step))
            failures.append((name, e))
            logger.warning(f"⚠️  Cleanup step {name} failed: {e}")
    return failures
