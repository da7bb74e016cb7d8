from __future__ import annotations

import base64
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from apis import fpt_tts, google_tts, microsoft_tts
from dubbing.errors import MissingCredentialsError, SpeechBackendError
from dubbing.logging_utils import get_logger
from dubbing.types import AudioClip

log = get_logger(__name__)

TOKEN_LIFETIME = 9 * 60
TOKEN_SAFETY_MARGIN = 60


def _error_message(resp: requests.Response, key_path=("error", "message")) -> str:
    """Pull the provider's error text out of a JSON body, else the raw text."""
    try:
        payload = resp.json()
    except ValueError:
        return resp.text.strip() or "unknown error"
    for key in key_path:
        if not isinstance(payload, dict):
            break
        payload = payload.get(key)
    return str(payload) if payload else "unknown error"


class RemoteBackend:
    """A remote HTTP TTS provider: synthesize text into an audio clip."""

    name = "remote"
    label = "Remote"

    def synthesize(self, text: str, voice_name: str) -> AudioClip:
        raise NotImplementedError

    def _post(self, call: Callable[[], requests.Response]) -> requests.Response:
        try:
            return call()
        except requests.exceptions.RequestException as e:
            log.error(f"{self.name} request failed", extra={"provider": self.name, "error": str(e)})
            raise SpeechBackendError(
                f"Could not reach the {self.label} API. Check your network connection and API key. ({e})",
                provider=self.name,
            )


class GoogleBackend(RemoteBackend):
    name = "google"
    label = "Google TTS"

    def __init__(self, api_key: Optional[str]) -> None:
        self.api_key = api_key

    def synthesize(self, text: str, voice_name: str) -> AudioClip:
        if not self.api_key:
            raise MissingCredentialsError("Please configure a Google Cloud API key (GOOGLE_API_KEY).", provider=self.name)

        log.debug("google.synthesize POST", extra={"voice": voice_name, "text_len": len(text)})
        resp = self._post(lambda: google_tts.synthesize(text, voice_name, self.api_key))
        if not resp.ok:
            raise SpeechBackendError(
                f"Google TTS API error: {resp.status_code} - {_error_message(resp)}",
                provider=self.name,
                status=resp.status_code,
            )
        try:
            content = resp.json().get("audioContent")
        except ValueError:
            content = None
        if not content:
            raise SpeechBackendError("Google TTS API returned no audio content.", provider=self.name)
        return AudioClip(data=base64.b64decode(content), format="mp3", provider=self.name)


@dataclass
class _Token:
    value: str
    expires_at: float


class TokenCache:
    """Bearer token reused until less than ``margin`` seconds of its lifetime remain."""

    def __init__(self, lifetime: float = TOKEN_LIFETIME, margin: float = TOKEN_SAFETY_MARGIN,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.lifetime = lifetime
        self.margin = margin
        self.clock = clock
        self._token: Optional[_Token] = None

    def get(self, issue: Callable[[], str]) -> str:
        now = self.clock()
        if self._token is not None and self._token.expires_at > now + self.margin:
            return self._token.value
        value = issue()
        self._token = _Token(value=value, expires_at=now + self.lifetime)
        return value

    def clear(self) -> None:
        self._token = None


class MicrosoftBackend(RemoteBackend):
    name = "microsoft"
    label = "Microsoft TTS"

    def __init__(self, api_key: Optional[str], region: Optional[str], token_cache: Optional[TokenCache] = None) -> None:
        self.api_key = api_key
        self.region = region
        self.tokens = token_cache or TokenCache()

    def _issue_token(self) -> str:
        resp = self._post(lambda: microsoft_tts.issue_token(self.api_key, self.region))
        if not resp.ok:
            raise SpeechBackendError(
                f"Could not obtain an Azure authentication token. Status: {resp.status_code}",
                provider=self.name,
                status=resp.status_code,
            )
        log.info("microsoft token issued", extra={"region": self.region})
        return resp.text.strip()

    def synthesize(self, text: str, voice_name: str) -> AudioClip:
        if not self.api_key or not self.region:
            raise MissingCredentialsError(
                "Please configure the Microsoft Azure API key and region "
                "(MICROSOFT_API_KEY, MICROSOFT_API_REGION).",
                provider=self.name,
            )
        token = self.tokens.get(self._issue_token)
        ssml = microsoft_tts.build_ssml(text, voice_name, language=google_tts.language_of(voice_name))
        log.debug("microsoft.synthesize POST", extra={"voice": voice_name, "text_len": len(text)})
        resp = self._post(lambda: microsoft_tts.synthesize(ssml, token, self.region))
        if not resp.ok:
            if resp.status_code == 401:
                self.tokens.clear()
            raise SpeechBackendError(
                f"Microsoft TTS API error: {resp.status_code} - {resp.text.strip()}",
                provider=self.name,
                status=resp.status_code,
            )
        return AudioClip(data=resp.content, format="mp3", provider=self.name)


class FptBackend(RemoteBackend):
    name = "fpt"
    label = "FPT.AI"

    def __init__(self, api_key: Optional[str]) -> None:
        self.api_key = api_key

    def synthesize(self, text: str, voice_name: str) -> AudioClip:
        if not self.api_key:
            raise MissingCredentialsError("Please configure an FPT.AI API key (FPT_API_KEY).", provider=self.name)

        log.debug("fpt.request_speech POST", extra={"voice": voice_name, "text_len": len(text)})
        resp = self._post(lambda: fpt_tts.request_speech(text, voice_name, self.api_key))
        if not resp.ok:
            raise SpeechBackendError(
                f"FPT.AI error: {resp.status_code} - {_error_message(resp, ('message',))}",
                provider=self.name,
                status=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if payload.get("error") != 0 or not payload.get("async"):
            message = payload.get("message") or "the API returned no audio URL."
            raise SpeechBackendError(f"FPT.AI error: {message}", provider=self.name)

        audio = self._post(lambda: fpt_tts.download_audio(payload["async"]))
        if not audio.ok:
            raise SpeechBackendError(
                f"Could not download the FPT.AI audio file (HTTP {audio.status_code}).",
                provider=self.name,
                status=audio.status_code,
            )
        return AudioClip(data=audio.content, format="mp3", provider=self.name)


def build_backends(settings) -> Dict[str, RemoteBackend]:
    """Remote backends keyed by provider name, credentials taken from ``settings``."""
    return {
        GoogleBackend.name: GoogleBackend(settings.google_api_key),
        MicrosoftBackend.name: MicrosoftBackend(settings.microsoft_api_key, settings.microsoft_region),
        FptBackend.name: FptBackend(settings.fpt_api_key),
    }
