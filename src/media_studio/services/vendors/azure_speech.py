"""
Azure Speech text-to-speech adapter
"""
import logging
from typing import Dict
from xml.sax.saxutils import escape, quoteattr

from .base import VendorClient

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "en-US-JennyNeural"
OUTPUT_FORMAT = "audio-16khz-128kbitrate-mono-mp3"


def build_ssml(text: str, voice: str = DEFAULT_VOICE) -> str:
    """Wrap plain text in an SSML document for one voice"""
    lang = "-".join(voice.split("-")[:2]) or "en-US"
    return (
        f'<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" xml:lang={quoteattr(lang)}>'
        f"<voice name={quoteattr(voice)}>{escape(text)}</voice>"
        "</speak>"
    )


class AzureSpeechClient(VendorClient):
    """Synthesises MP3 audio; the caller stores the bytes and exposes a URL"""

    vendor = "azure_speech"

    def __init__(self, api_key: str, region: str, client=None):
        super().__init__(api_key, f"https://{region}.tts.speech.microsoft.com", client=client)
        self.region = region

    def _headers(self) -> Dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": OUTPUT_FORMAT,
            "User-Agent": "media-studio",
        }

    async def synthesize(self, text: str, voice: str = DEFAULT_VOICE) -> bytes:
        response = await self._request(
            "POST",
            f"{self.base_url}/cognitiveservices/v1",
            content=build_ssml(text, voice).encode("utf-8"),
        )
        logger.info(f"Synthesised {len(response.content)} bytes of speech with {voice}")
        return response.content
