"""
Tests for RecognitionSession: life cycle, result folding, commits and recovery.
"""

from voice_orchestrator.models import RecognitionErrorKind
from voice_orchestrator.sessions import RecognitionSession
from voice_orchestrator.utils.error_handling import ErrorHandler, ErrorSeverity


def make_session(engine, scheduler, **kwargs):
    commits = []
    listening = []
    transcripts = []
    handler = ErrorHandler()
    session = RecognitionSession(
        engine,
        scheduler=scheduler,
        error_handler=handler,
        on_commit=commits.append,
        on_listening_change=listening.append,
        on_transcript=lambda display, heard: transcripts.append((display, heard)),
        **kwargs
    )
    return session, commits, listening, transcripts, handler


class TestLifecycle:

    def test_start_marks_listening(self, recognition_engine, scheduler):
        session, _, listening, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        assert session.listening
        assert session.should_restart
        assert listening == [True]

    def test_duplicate_start_is_absorbed(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        session.start()
        assert recognition_engine.start_calls == 2
        assert session.listening
        assert handler.get_error_history() == []

    def test_stop_does_not_restart(self, recognition_engine, scheduler):
        session, _, listening, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        assert session.stop() == "oi"

        scheduler.advance(1.0)
        assert not session.listening
        assert recognition_engine.start_calls == 1
        assert listening == [True, False]

    def test_stop_cancels_pending_commit(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        session.stop()
        scheduler.advance(5.0)
        assert commits == []

    def test_unexpected_end_restarts_within_restart_delay(self, recognition_engine, scheduler):
        session, _, listening, _, _ = make_session(recognition_engine, scheduler)
        session.start()

        recognition_engine.crash()
        assert session.listening

        scheduler.advance(0.1)
        assert recognition_engine.running
        assert recognition_engine.start_calls == 2
        assert listening == [True]

    def test_restart_retried_once(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.fail_next_starts = 1

        recognition_engine.crash()
        scheduler.advance(0.1)
        assert not recognition_engine.running
        scheduler.advance(0.1)

        assert recognition_engine.running
        assert session.listening
        assert handler.get_error_history() == []

    def test_restart_gives_up_after_retry(self, recognition_engine, scheduler):
        session, _, listening, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.fail_next_starts = 5

        recognition_engine.crash()
        scheduler.advance(1.0)

        assert recognition_engine.start_calls == 3
        assert not session.listening
        assert not session.should_restart
        assert listening == [True, False]
        errors = handler.get_error_history("recognition")
        assert len(errors) == 1
        assert errors[0].severity == ErrorSeverity.RECOVERABLE
        assert errors[0].kind == RecognitionErrorKind.ENGINE_UNAVAILABLE.value

    def test_start_failure_is_swallowed(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        recognition_engine.fail_next_starts = 1
        session.start()
        assert not session.listening
        assert handler.get_error_history()[0].severity == ErrorSeverity.TRANSIENT

    def test_close_detaches(self, recognition_engine, scheduler):
        session, _, _, transcripts, _ = make_session(recognition_engine, scheduler)
        session.start()
        session.close()
        recognition_engine.running = True
        recognition_engine.hear("depois")
        assert transcripts == []


class TestResultFolding:

    def test_finals_accumulate(self, recognition_engine, scheduler):
        session, _, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        recognition_engine.hear("tudo bem")
        assert session.accumulator.text == "oi tudo bem"

    def test_replayed_history_is_not_duplicated(self, recognition_engine, scheduler):
        session, _, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        recognition_engine.hear("tudo bem")
        recognition_engine.replay()
        recognition_engine.replay()
        assert session.accumulator.text == "oi tudo bem"

    def test_interim_shown_but_not_committed(self, recognition_engine, scheduler):
        session, _, _, transcripts, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        recognition_engine.hear("como", final=False)

        assert session.transcript == "oi como"
        assert session.accumulator.text == "oi"
        assert transcripts[-1] == ("oi como", "como")

    def test_cursor_resets_on_engine_restart(self, recognition_engine, scheduler):
        session, _, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("um")
        recognition_engine.hear("dois")

        recognition_engine.crash()
        scheduler.advance(0.1)
        recognition_engine.hear("três")

        assert session.accumulator.text == "um dois três"


class TestCommit:

    def test_commit_after_silence_window(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler, silence_window=1.5)
        session.start()

        recognition_engine.hear("oi")
        scheduler.advance(0.5)
        recognition_engine.hear("tudo")
        scheduler.advance(0.7)
        recognition_engine.hear("bem")

        scheduler.advance(1.4)
        assert commits == []
        scheduler.advance(0.1)
        assert commits == ["oi tudo bem"]
        assert abs(scheduler.now - 2.7) < 1e-6

    def test_interim_does_not_arm_timer(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("o", final=False)
        scheduler.advance(10.0)
        assert commits == []

    def test_commit_cycles_engine(self, recognition_engine, scheduler):
        session, commits, listening, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")

        assert session.commit() == "oi"
        assert commits == ["oi"]
        assert recognition_engine.stop_calls == 1
        assert session.listening
        assert session.accumulator.is_empty

        scheduler.advance(0.1)
        assert recognition_engine.running
        assert listening == [True]

    def test_commit_without_cycle(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(
            recognition_engine, scheduler, restart_on_commit=False
        )
        session.start()
        recognition_engine.hear("oi")
        session.commit()
        assert recognition_engine.stop_calls == 0
        assert commits == ["oi"]

    def test_empty_commit_reported_without_cycle(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        assert session.commit() == ""
        assert commits == [""]
        assert recognition_engine.stop_calls == 0

    def test_held_commit_rearmed_on_release(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        session.hold_commits()

        recognition_engine.hear("espera")
        scheduler.advance(5.0)
        assert commits == []
        assert session.commits_held
        assert session.accumulator.text == "espera"

        session.release_commits()
        scheduler.advance(2.0)
        assert commits == ["espera"]
        assert not session.commits_held

    def test_hold_cancels_pending_timer(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.hear("oi")
        session.hold_commits()
        scheduler.advance(5.0)
        assert commits == []

        session.release_commits()
        scheduler.advance(2.0)
        assert commits == ["oi"]

    def test_release_without_speech_does_not_commit(self, recognition_engine, scheduler):
        session, commits, _, _, _ = make_session(recognition_engine, scheduler)
        session.start()
        session.hold_commits()
        session.release_commits()
        scheduler.advance(5.0)
        assert commits == []


class TestErrors:

    def test_no_speech_ignored(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.error("no-speech")
        assert session.listening
        assert handler.get_error_history() == []

    def test_network_error_while_listening_is_recoverable(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.error("network")
        assert not session.listening
        assert handler.get_error_history()[0].severity == ErrorSeverity.RECOVERABLE

    def test_aborted_after_stop_is_transient(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        session.stop()
        recognition_engine.error("aborted")
        assert handler.get_error_history()[0].severity == ErrorSeverity.TRANSIENT

    def test_other_errors_only_logged(self, recognition_engine, scheduler):
        session, _, _, _, handler = make_session(recognition_engine, scheduler)
        session.start()
        recognition_engine.error("audio-capture")
        assert session.listening
        assert handler.get_error_history() == []
