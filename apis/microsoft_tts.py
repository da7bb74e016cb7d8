import requests


OUTPUT_FORMAT = "audio-24khz-160kbitrate-mono-mp3"


def token_url(region: str) -> str:
    return f"https://{region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"


def synthesis_url(region: str) -> str:
    return f"https://{region}.tts.speech.microsoft.com/cognitiveservices/v1"


def escape_xml(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_ssml(text: str, voice_name: str, language: str = "vi-VN") -> str:
    return (
        f"<speak version='1.0' xml:lang='{language}'>"
        f"<voice xml:lang='{language}' name='{voice_name}'>"
        f"{escape_xml(text)}"
        "</voice></speak>"
    )


def issue_token(api_key: str, region: str) -> requests.Response:
    """Exchange the subscription key for a short-lived bearer token (text body)."""
    return requests.post(
        token_url(region),
        headers={
            "Ocp-Apim-Subscription-Key": api_key,
            "Content-Type": "application/x-www-form-urlencoded",
        },
    )


def synthesize(ssml: str, token: str, region: str) -> requests.Response:
    return requests.post(
        synthesis_url(region),
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": OUTPUT_FORMAT,
        },
        data=ssml.encode("utf-8"),
    )
