"""
Prompt translation through fal.ai's text-translation model
"""
import logging

import httpx

from ..exceptions import StudioError, InvalidInput
from ..i18n import SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)


class TranslationService:
    """Translates user text on explicit request; never applied implicitly to prompts"""

    def __init__(self, fal_client, poller):
        self.fal_client = fal_client
        self.poller = poller

    async def translate(self, text: str, source: str, target: str) -> str:
        """
        Translate `text` from `source` to `target`

        Same language returns the text unchanged, blank text returns "", and
        a vendor failure returns the original text.
        """
        for lang in (source, target):
            if lang not in SUPPORTED_LANGUAGES:
                raise InvalidInput(f"Unsupported language: {lang}", details={"supported": list(SUPPORTED_LANGUAGES)})

        if source == target:
            return text
        if not text or not text.strip():
            return ""

        try:
            translated = await self.fal_client.translate(text, source, target, self.poller)
        except (StudioError, httpx.HTTPError) as e:
            logger.warning(f"Translation {source}->{target} failed, returning original text: {e}")
            return text

        return translated or text
