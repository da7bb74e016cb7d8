import requests
from typing import Dict


API_ENDPOINT = "https://texttospeech.googleapis.com/v1/text:synthesize"


def language_of(voice_name: str) -> str:
    """'vi-VN-Wavenet-A' -> 'vi-VN'"""
    parts = voice_name.split("-")
    return "-".join(parts[:2]) if len(parts) >= 2 else "vi-VN"


def build_request(text: str, voice_name: str, audio_encoding: str = "MP3") -> Dict:
    return {
        "input": {"text": text},
        "voice": {
            "languageCode": language_of(voice_name),
            "name": voice_name,
        },
        "audioConfig": {"audioEncoding": audio_encoding},
    }


def synthesize(text: str, voice_name: str, api_key: str) -> requests.Response:
    """
    Google Cloud Text-to-Speech に合成を依頼する

    Args:
        text (str): 読み上げるテキスト
        voice_name (str): 音声名 (例: vi-VN-Standard-A)
        api_key (str): Google Cloud の API キー

    Returns:
        requests.Response: 成功時は base64 の audioContent を含む JSON
    """
    return requests.post(
        API_ENDPOINT,
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json=build_request(text, voice_name),
    )
