"""
Tests for VoiceChat: dictation with the chat silence window and spoken replies.
"""

from voice_orchestrator.utils.error_handling import ErrorSeverity
from voice_orchestrator.voice_chat import VoiceChat


def make_chat(recognition_engine, synthesis_engine, scheduler, **kwargs):
    record = {'finals': [], 'transcripts': [], 'listening': [], 'errors': []}
    chat = VoiceChat(
        recognition_engine,
        synthesis_engine,
        scheduler=scheduler,
        on_final_transcript=record['finals'].append,
        on_transcript=record['transcripts'].append,
        on_listening_change=record['listening'].append,
        on_error=record['errors'].append,
        **kwargs
    )
    return chat, record


class TestDictation:

    def test_message_committed_after_chat_window(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        assert chat.is_listening

        recognition_engine.hear("marcar reunião")
        assert record['transcripts'] == ["marcar reunião"]

        scheduler.advance(1.4)
        assert record['finals'] == []
        scheduler.advance(0.1)
        assert record['finals'] == ["marcar reunião"]

    def test_listening_stops_after_message(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        recognition_engine.hear("oi")
        scheduler.advance(1.5)

        assert not chat.is_listening
        assert record['listening'] == [True, False]
        assert recognition_engine.stop_calls == 1

        scheduler.advance(1.0)
        assert recognition_engine.start_calls == 1

    def test_next_message_starts_fresh(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        recognition_engine.hear("primeira")
        scheduler.advance(1.5)

        chat.start_listening()
        recognition_engine.hear("segunda")
        scheduler.advance(1.5)

        assert record['finals'] == ["primeira", "segunda"]

    def test_silence_alone_commits_nothing(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        scheduler.advance(10.0)
        assert record['finals'] == []
        assert chat.is_listening

    def test_stop_listening_returns_dictation(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        recognition_engine.hear("rascunho")

        assert chat.stop_listening() == "rascunho"
        scheduler.advance(5.0)
        assert record['finals'] == []
        assert not chat.is_listening

    def test_toggle_listening(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert chat.toggle_listening() == ""
        assert chat.is_listening

        recognition_engine.hear("oi")
        assert chat.toggle_listening() == "oi"
        assert not chat.is_listening

    def test_engine_crash_keeps_listening(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        recognition_engine.crash()
        scheduler.advance(0.1)

        assert chat.is_listening
        assert record['listening'] == [True]
        assert recognition_engine.start_calls == 2

    def test_network_error_is_reported(self, recognition_engine, synthesis_engine, scheduler):
        chat, record = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.start_listening()
        recognition_engine.error("network")

        assert not chat.is_listening
        assert len(record['errors']) == 1
        assert record['errors'][0].severity == ErrorSeverity.RECOVERABLE

    def test_is_supported(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert chat.is_supported


class TestSpeaking:

    def test_speak_reply(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert chat.speak("Olá!") is not None
        assert chat.is_speaking
        synthesis_engine.finish()
        assert not chat.is_speaking

    def test_voice_disabled(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler, voice_enabled=False)
        assert chat.speak("Olá!") is None
        assert not chat.speak_message("m1", "Olá!")
        assert synthesis_engine.spoken == []

    def test_speak_message_once(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert chat.speak_message("m1", "primeira")
        assert not chat.speak_message("m1", "primeira")
        assert chat.speak_message("m2", "segunda")
        assert synthesis_engine.spoken == ["primeira", "segunda"]

    def test_empty_message_not_marked_spoken(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert not chat.speak_message("m1", "  ")
        assert chat.speak_message("m1", "agora sim")

    def test_listening_cancels_reply(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        chat.speak("uma resposta")
        chat.start_listening()

        assert synthesis_engine.cancel_calls == 1
        assert not chat.is_speaking
        assert chat.is_listening

    def test_keep_listening_while_speaking(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(
            recognition_engine, synthesis_engine, scheduler, keep_listening_while_speaking=True
        )
        chat.speak("uma resposta")
        chat.start_listening()

        assert synthesis_engine.cancel_calls == 0
        assert chat.is_speaking
        assert chat.is_listening

    def test_stop_speaking(self, recognition_engine, synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, synthesis_engine, scheduler)
        assert not chat.stop_speaking()
        chat.speak("oi")
        assert chat.stop_speaking()

    def test_voice_settings(self, recognition_engine, voiced_synthesis_engine, scheduler):
        chat, _ = make_chat(recognition_engine, voiced_synthesis_engine, scheduler)
        assert chat.selected_voice.name == "Luciana"
        assert len(chat.available_voices) == 3
        assert chat.voice_settings.rate == 0.95

        chat.update_voice_settings(volume=0.5)
        chat.select_voice(chat.available_voices[1])
        chat.speak("oi")

        settings = voiced_synthesis_engine.settings[0]
        assert settings.volume == 0.5
        assert settings.voice_name == "Joana"
