import base64
from unittest.mock import MagicMock

import pytest
import requests

from apis import fpt_tts, google_tts, microsoft_tts
from dubbing.backends import FptBackend, GoogleBackend, MicrosoftBackend, TokenCache, build_backends
from dubbing.config import Settings
from dubbing.errors import MissingCredentialsError, SpeechBackendError


def _response(status=200, json_data=None, text="", content=b""):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.text = text
    resp.content = content
    if json_data is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_data
    return resp


def test_google_request_and_decode(monkeypatch):
    post = MagicMock(return_value=_response(json_data={"audioContent": base64.b64encode(b"mp3data").decode()}))
    monkeypatch.setattr(google_tts.requests, "post", post)

    clip = GoogleBackend("key-123").synthesize("Xin chao", "vi-VN-Wavenet-A")

    assert clip.data == b"mp3data"
    assert clip.format == "mp3"
    _, kwargs = post.call_args
    assert post.call_args[0][0] == google_tts.API_ENDPOINT
    assert kwargs["params"] == {"key": "key-123"}
    assert kwargs["json"] == {
        "input": {"text": "Xin chao"},
        "voice": {"languageCode": "vi-VN", "name": "vi-VN-Wavenet-A"},
        "audioConfig": {"audioEncoding": "MP3"},
    }


def test_google_error_message_includes_status(monkeypatch):
    monkeypatch.setattr(
        google_tts.requests, "post",
        MagicMock(return_value=_response(403, json_data={"error": {"message": "API key not valid"}})),
    )
    with pytest.raises(SpeechBackendError) as exc:
        GoogleBackend("bad").synthesize("x", "vi-VN-Standard-A")
    assert str(exc.value) == "Google TTS API error: 403 - API key not valid"
    assert exc.value.status == 403


def test_google_missing_audio(monkeypatch):
    monkeypatch.setattr(google_tts.requests, "post", MagicMock(return_value=_response(json_data={})))
    with pytest.raises(SpeechBackendError, match="no audio content"):
        GoogleBackend("key").synthesize("x", "vi-VN-Standard-A")


def test_missing_credentials_fail_before_any_request(monkeypatch):
    post = MagicMock()
    monkeypatch.setattr(requests, "post", post)

    with pytest.raises(MissingCredentialsError):
        GoogleBackend(None).synthesize("x", "vi-VN-Standard-A")
    with pytest.raises(MissingCredentialsError):
        MicrosoftBackend("key", None).synthesize("x", "vi-VN-HoaiMyNeural")
    with pytest.raises(MissingCredentialsError):
        FptBackend("").synthesize("x", "banmai")
    post.assert_not_called()


def test_network_failure_becomes_backend_error(monkeypatch):
    monkeypatch.setattr(
        google_tts.requests, "post", MagicMock(side_effect=requests.exceptions.ConnectionError("offline"))
    )
    with pytest.raises(SpeechBackendError, match="Could not reach the Google TTS API"):
        GoogleBackend("key").synthesize("x", "vi-VN-Standard-A")


def test_token_cache_reuses_until_margin():
    now = [0.0]
    cache = TokenCache(lifetime=540, margin=60, clock=lambda: now[0])
    issue = MagicMock(side_effect=["t1", "t2"])

    assert cache.get(issue) == "t1"
    now[0] = 479.0
    assert cache.get(issue) == "t1"
    now[0] = 481.0
    assert cache.get(issue) == "t2"
    assert issue.call_count == 2


def test_microsoft_issues_token_once_and_sends_ssml(monkeypatch):
    calls = []

    def fake_post(url, headers=None, data=None, **kwargs):
        calls.append((url, headers, data))
        if url.endswith("issueToken"):
            return _response(text="token-abc\n")
        return _response(content=b"mp3bytes")

    monkeypatch.setattr(microsoft_tts.requests, "post", fake_post)
    backend = MicrosoftBackend("key", "southeastasia")

    assert backend.synthesize("A & B", "vi-VN-HoaiMyNeural").data == b"mp3bytes"
    backend.synthesize("again", "vi-VN-HoaiMyNeural")

    token_calls = [c for c in calls if c[0].endswith("issueToken")]
    assert len(token_calls) == 1
    assert token_calls[0][0] == "https://southeastasia.api.cognitive.microsoft.com/sts/v1.0/issueToken"
    assert token_calls[0][1]["Ocp-Apim-Subscription-Key"] == "key"

    url, headers, data = calls[1]
    assert url == "https://southeastasia.tts.speech.microsoft.com/cognitiveservices/v1"
    assert headers["Authorization"] == "Bearer token-abc"
    assert headers["X-Microsoft-OutputFormat"] == "audio-24khz-160kbitrate-mono-mp3"
    assert "name='vi-VN-HoaiMyNeural'" in data.decode("utf-8")
    assert "A &amp; B" in data.decode("utf-8")


def test_microsoft_401_drops_cached_token(monkeypatch):
    responses = iter([_response(text="t1"), _response(401, text="Unauthorized"), _response(text="t2"), _response(content=b"ok")])
    monkeypatch.setattr(microsoft_tts.requests, "post", lambda *a, **k: next(responses))
    backend = MicrosoftBackend("key", "westeurope")

    with pytest.raises(SpeechBackendError, match="Microsoft TTS API error: 401 - Unauthorized"):
        backend.synthesize("x", "vi-VN-NamMinhNeural")
    assert backend.synthesize("x", "vi-VN-NamMinhNeural").data == b"ok"


def test_microsoft_token_failure(monkeypatch):
    monkeypatch.setattr(microsoft_tts.requests, "post", MagicMock(return_value=_response(401, text="")))
    with pytest.raises(SpeechBackendError, match="authentication token"):
        MicrosoftBackend("key", "westeurope").synthesize("x", "vi-VN-NamMinhNeural")


def test_fpt_two_step_request(monkeypatch):
    post = MagicMock(return_value=_response(json_data={"error": 0, "async": "https://file.fpt.ai/a.mp3"}))
    get = MagicMock(return_value=_response(content=b"fptaudio"))
    monkeypatch.setattr(fpt_tts.requests, "post", post)
    monkeypatch.setattr(fpt_tts.requests, "get", get)

    clip = FptBackend("fpt-key").synthesize("Xin chao", "banmai")

    assert clip.data == b"fptaudio"
    args, kwargs = post.call_args
    assert args[0] == fpt_tts.API_ENDPOINT
    assert kwargs["headers"]["api-key"] == "fpt-key"
    assert kwargs["headers"]["voice"] == "banmai"
    assert kwargs["data"] == "Xin chao".encode("utf-8")
    get.assert_called_once_with("https://file.fpt.ai/a.mp3")


def test_fpt_reports_api_error(monkeypatch):
    monkeypatch.setattr(
        fpt_tts.requests, "post",
        MagicMock(return_value=_response(json_data={"error": 1, "message": "Invalid voice"})),
    )
    with pytest.raises(SpeechBackendError, match="FPT.AI error: Invalid voice"):
        FptBackend("key").synthesize("x", "nobody")


def test_build_backends_from_settings():
    backends = build_backends(Settings(google_api_key="g", microsoft_api_key="m", microsoft_region="r", fpt_api_key="f"))
    assert set(backends) == {"google", "microsoft", "fpt"}
    assert backends["microsoft"].region == "r"
