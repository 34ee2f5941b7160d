"""
Tests for the state machine, error handling, barge-in detection and scheduling.
"""

import asyncio

import pytest

from voice_orchestrator.models import TurnState
from voice_orchestrator.utils.barge_in import BargeInConfig, BargeInDetector, BargeInMode
from voice_orchestrator.utils.error_handling import (
    ComponentError,
    ErrorHandler,
    ErrorSeverity,
    safe_cleanup,
)
from voice_orchestrator.utils.logging_config import get_logger, set_call_context, setup_logging
from voice_orchestrator.utils.scheduling import LoopScheduler
from voice_orchestrator.utils.state_machine import TurnStateMachine


class TestTurnStateMachine:

    def test_starts_idle(self):
        assert TurnStateMachine().current_state == TurnState.IDLE

    def test_turn_cycle(self):
        machine = TurnStateMachine()
        for state in (TurnState.LISTENING, TurnState.PROCESSING, TurnState.SPEAKING, TurnState.LISTENING):
            assert machine.transition_to(state, "test")
        assert len(machine.get_transition_history()) == 4
        assert machine.completed_turns == 1
        assert machine.get_status()['last_reason'] == "test"

    def test_self_transition_not_recorded(self):
        machine = TurnStateMachine()
        machine.transition_to(TurnState.LISTENING)
        assert not machine.transition_to(TurnState.LISTENING)
        assert len(machine.get_transition_history()) == 1

    def test_invalid_transition(self):
        machine = TurnStateMachine()
        with pytest.raises(ValueError):
            machine.transition_to(TurnState.SPEAKING)

    def test_reset_from_any_state(self):
        machine = TurnStateMachine()
        machine.transition_to(TurnState.LISTENING)
        machine.transition_to(TurnState.PROCESSING)
        machine.reset()
        assert machine.current_state == TurnState.IDLE
        machine.reset()
        assert machine.get_status()['state'] == "IDLE"


class TestErrorHandler:

    def test_listeners_receive_errors(self):
        handler = ErrorHandler()
        seen = []
        handler.add_listener(seen.append)

        error = ComponentError(component="speech", severity=ErrorSeverity.RECOVERABLE, message="x")
        assert not handler.handle_error(error)
        assert seen == [error]
        assert error.is_user_visible

    def test_transient_and_contract_are_absorbed(self):
        handler = ErrorHandler()
        assert handler.handle_error(ComponentError("recognition", ErrorSeverity.TRANSIENT, "noise"))
        assert handler.handle_error(ComponentError("coordinator", ErrorSeverity.CONTRACT, "misuse"))
        assert not ComponentError("x", ErrorSeverity.CONTRACT, "m").is_user_visible

    def test_failing_listener_does_not_break_others(self):
        handler = ErrorHandler()
        seen = []

        def broken(error):
            raise RuntimeError("listener bug")

        handler.add_listener(broken)
        handler.add_listener(seen.append)
        handler.handle_error(ComponentError("backend", ErrorSeverity.BACKEND, "failed"))
        assert len(seen) == 1

    def test_history_is_bounded_and_filterable(self):
        handler = ErrorHandler(max_history=3)
        for i in range(5):
            handler.handle_error(ComponentError("speech" if i % 2 else "recognition",
                                                ErrorSeverity.TRANSIENT, str(i)))
        assert [e.message for e in handler.get_error_history()] == ["2", "3", "4"]
        assert [e.message for e in handler.get_error_history("speech")] == ["3"]

        summary = handler.get_error_summary()
        assert summary['total_errors'] == 3
        assert summary['by_severity'] == {'transient': 3}
        assert summary['last_user_visible'] is None

    def test_summary_reports_last_user_visible_error(self):
        handler = ErrorHandler()
        handler.handle_error(ComponentError("recognition", ErrorSeverity.RECOVERABLE,
                                            "engine stopped", kind="network"))
        handler.handle_error(ComponentError("coordinator", ErrorSeverity.CONTRACT, "misuse"))

        summary = handler.get_error_summary()
        assert summary['last_user_visible'] == "recognition: engine stopped [network]"
        assert summary['by_component'] == {'recognition': 1, 'coordinator': 1}
        assert len(handler.get_error_history(severity=ErrorSeverity.CONTRACT)) == 1

    def test_traceback_captured(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            error = ComponentError("backend", ErrorSeverity.BACKEND, "failed", exception=e)
        assert "ValueError: boom" in error.traceback_str

    def test_safe_cleanup_runs_everything(self):
        ran = []

        def failing():
            raise RuntimeError("close failed")

        errors = safe_cleanup(lambda: ran.append(1), failing, lambda: ran.append(2))
        assert ran == [1, 2]
        assert len(errors) == 1
        assert errors[0][0] == "failing"


class TestBargeInDetector:

    def test_any_speech_interrupts_by_default(self):
        detector = BargeInDetector()
        assert detector.should_interrupt("a")
        assert not detector.should_interrupt("   ")
        assert not detector.should_interrupt("")

    def test_disabled(self):
        detector = BargeInDetector(BargeInConfig(mode=BargeInMode.DISABLED))
        assert not detector.enabled
        assert not detector.should_interrupt("espera")

    def test_min_chars(self):
        detector = BargeInDetector(BargeInConfig(min_chars=3))
        assert not detector.should_interrupt("oi")
        assert detector.should_interrupt("oi!")

    def test_cooldown_after_playback_start(self):
        now = [100.0]
        detector = BargeInDetector(
            BargeInConfig(cooldown_after_playback_start=0.5), clock=lambda: now[0]
        )
        detector.playback_started()

        now[0] = 100.3
        assert not detector.should_interrupt("espera")
        now[0] = 100.6
        assert detector.should_interrupt("espera")

        detector.playback_ended()
        now[0] = 100.0
        assert detector.should_interrupt("espera")


class TestLoopScheduler:

    @pytest.mark.asyncio
    async def test_runs_callback_on_loop(self):
        fired = asyncio.Event()
        LoopScheduler().call_later(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), 1.0)

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        handle = LoopScheduler().call_later(0.01, lambda: fired.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []


class TestLogging:

    def test_records_carry_component_and_call(self, tmp_path):
        log_file = tmp_path / "turns.log"
        logger = setup_logging(level="DEBUG", log_file=log_file, use_colors=False)
        try:
            set_call_context(3, "listening")
            get_logger("coordinator").info("💬 User: oi")
            set_call_context(None)
            get_logger("speech").debug("idle")
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert "[coordinator ]" in lines[0]
        assert "[call 3 · listening]" in lines[0]
        assert lines[0].endswith("💬 User: oi")
        assert "[speech" in lines[1]
        assert "call" not in lines[1]
