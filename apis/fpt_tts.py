import requests


API_ENDPOINT = "https://api.fpt.ai/hmi/tts/v5"


def request_speech(text: str, voice: str, api_key: str) -> requests.Response:
    """
    FPT.AI に音声合成を依頼する

    Returns:
        requests.Response: JSON {"error": 0, "async": <音声ファイルURL>, "message": ...}
    """
    return requests.post(
        API_ENDPOINT,
        headers={
            "api-key": api_key,
            "voice": voice,
            "Content-Type": "text/plain",
        },
        data=text.encode("utf-8"),
    )


def download_audio(url: str) -> requests.Response:
    return requests.get(url)
