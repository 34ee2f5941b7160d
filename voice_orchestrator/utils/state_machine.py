"""
Turn state machine.

Idle → Listening → Processing → Speaking → Listening ... → Idle
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Any, FrozenSet, List

from ..models.data_models import TurnState
from .logging_config import get_logger


logger = get_logger("state")


@dataclass(frozen=True)
class StateTransition:
    from_state: TurnState
    to_state: TurnState
    reason: str
    timestamp: float


_ALLOWED: Dict[TurnState, FrozenSet[TurnState]] = {
    TurnState.IDLE: frozenset({TurnState.LISTENING}),
    # SPEAKING directly from LISTENING is a host-driven reply
    TurnState.LISTENING: frozenset({TurnState.PROCESSING, TurnState.SPEAKING, TurnState.IDLE}),
    # LISTENING from PROCESSING is an aborted turn
    TurnState.PROCESSING: frozenset({TurnState.SPEAKING, TurnState.LISTENING, TurnState.IDLE}),
    TurnState.SPEAKING: frozenset({TurnState.LISTENING, TurnState.IDLE}),
}


class TurnStateMachine:
    """
    Validated turn state with a bounded transition log.

    Self-transitions are no-ops and are not logged. Any other move outside
    the allowed table is a programming error and raises ValueError.
    """

    def __init__(self, max_history: int = 200):
        self._state = TurnState.IDLE
        self._history: Deque[StateTransition] = deque(maxlen=max_history)
        self._turns = 0

    @property
    def current_state(self) -> TurnState:
        return self._state

    @property
    def completed_turns(self) -> int:
        """Replies that reached SPEAKING since construction."""
        return self._turns

    def can_transition(self, target_state: TurnState) -> bool:
        return target_state in _ALLOWED[self._state]

    def transition_to(self, target_state: TurnState, reason: str = "") -> bool:
        """
        Move to target_state.

        Returns:
            True if the state changed, False for a self-transition

        Raises:
            ValueError: If the move is not in the allowed table
        """
        current = self._state
        if target_state == current:
            return False
        if not self.can_transition(target_state):
            raise ValueError(f"Invalid transition: {current.name} → {target_state.name}")

        self._history.append(StateTransition(current, target_state, reason or "unknown", time.time()))
        self._state = target_state
        if target_state == TurnState.SPEAKING:
            self._turns += 1

        logger.info(f"🔄 {current.name} → {target_state.name} ({reason or 'unknown'})")
        return True

    def reset(self, reason: str = "reset") -> None:
        if self._state != TurnState.IDLE:
            self.transition_to(TurnState.IDLE, reason)

    def get_transition_history(self, last_n: int = 10) -> List[StateTransition]:
        return list(self._history)[-last_n:]

    def get_status(self) -> Dict[str, Any]:
        last = self._history[-1] if self._history else None
        return {
            'state': self._state.name,
            'completed_turns': self._turns,
            'last_reason': last.reason if last else None,
        }
