import pytest

from dubbing.dispatcher import DISCLOSURE_PHRASE, BackendDispatcher
from dubbing.errors import SpeechBackendError
from dubbing.session import SpeechSession
from dubbing.types import CustomVoiceRef, LocalVoiceRef, RemoteVoiceRef, SpeakOptions

from conftest import FakeBackend, FakeEngine, FakePlayer


def test_local_voice_is_chunked_by_line_and_length(engine):
    dispatcher = BackendDispatcher(engine, {}, player=FakePlayer(), max_chunk_chars=5)

    dispatcher.speak("abcdefgh\n\nxy", LocalVoiceRef("en-voice"), SpeakOptions.normal(), SpeechSession())

    assert [t for t, _, _ in engine.said] == ["abcde", "fgh", "xy"]
    assert {h for _, h, _ in engine.said} == {"en-voice"}


def test_capture_options_reach_local_engine(dispatcher, engine, session):
    dispatcher.speak("hello", "en-voice", SpeakOptions.fast(), session)
    assert engine.said == [("hello", "en-voice", SpeakOptions(rate=10.0, muted=True))]


def test_custom_voice_speaks_disclosure_at_normal_settings(dispatcher, engine, session):
    dispatcher.speak("line", CustomVoiceRef("custom-1", base_handle="vi-voice"), SpeakOptions.fast(), session)

    assert engine.said == [
        (DISCLOSURE_PHRASE, "vi-voice", SpeakOptions.normal()),
        ("line", "vi-voice", SpeakOptions.fast()),
    ]


def test_custom_voice_falls_back_to_engine_default(dispatcher, engine, session):
    dispatcher.speak("line", "custom-1", SpeakOptions.normal(), session)
    assert engine.said[0][1] == "vi-voice"


def test_custom_voice_without_base_voice_fails(remotes, player, session):
    dispatcher = BackendDispatcher(FakeEngine(voices=[]), remotes, player=player)
    with pytest.raises(SpeechBackendError, match="base voice"):
        dispatcher.speak("line", "custom-1", SpeakOptions.normal(), session)


def test_remote_voice_is_synthesized_and_played(dispatcher, remotes, player, engine, session):
    dispatcher.speak("Xin chao", "fpt-banmai", SpeakOptions.fast(), session)

    assert remotes["fpt"].requests == [("Xin chao", "banmai")]
    assert len(player.played) == 1
    assert engine.said == []


def test_remote_error_propagates(engine, player, session):
    failing = FakeBackend("google", error=SpeechBackendError("Google TTS API error: 500 - boom", provider="google"))
    dispatcher = BackendDispatcher(engine, {"google": failing}, player=player)

    with pytest.raises(SpeechBackendError, match="500"):
        dispatcher.speak("x", RemoteVoiceRef("google", "vi-VN-Standard-A"), SpeakOptions.normal(), session)
    assert player.played == []


def test_unknown_provider(engine, player, session):
    dispatcher = BackendDispatcher(engine, {}, player=player)
    with pytest.raises(SpeechBackendError, match="No speech backend"):
        dispatcher.speak("x", RemoteVoiceRef("fpt", "banmai"), SpeakOptions.normal(), session)


def test_cancelled_session_speaks_nothing(dispatcher, engine, remotes, session):
    session.cancel()
    dispatcher.speak("hello", "en-voice", SpeakOptions.normal(), session)
    dispatcher.speak("hello", "fpt-banmai", SpeakOptions.normal(), session)

    assert engine.said == []
    assert remotes["fpt"].requests == []


def test_cancel_between_chunks_stops_remaining_chunks(remotes, player):
    session = SpeechSession()
    engine = FakeEngine(on_say=lambda text: session.cancel())
    dispatcher = BackendDispatcher(engine, remotes, player=player)

    dispatcher.speak("one\ntwo\nthree", "en-voice", SpeakOptions.normal(), session)

    assert [t for t, _, _ in engine.said] == ["one"]
    assert engine.stopped == 1


def test_result_of_cancelled_remote_request_is_dropped(engine, player):
    session = SpeechSession()

    class CancellingBackend(FakeBackend):
        def synthesize(self, text, voice_name):
            clip = super().synthesize(text, voice_name)
            session.cancel()
            return clip

    dispatcher = BackendDispatcher(engine, {"fpt": CancellingBackend("fpt")}, player=player)
    dispatcher.speak("x", "fpt-leminh", SpeakOptions.normal(), session)

    assert player.played == []
