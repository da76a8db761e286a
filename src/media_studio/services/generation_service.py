"""
Generation Service - runs one generation request end to end

reserve credit -> vendor submit/poll -> copy artifact to storage -> history row

A failure anywhere releases the reserved credit and records nothing.
"""
import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

from ..config import config
from ..db.models.content import ContentHistoryItem, ContentType
from ..db.models.user import User
from ..exceptions import GenerationFailed, InvalidInput, StudioError
from .api_key_service import ApiKeyService
from .history_service import HistoryService
from .storage_provider import StorageProvider
from .story_service import CharacterDetails, StoryScene, StoryService
from .usage_tracker import UsageTracker
from .vendors import AIVIDEOAPI, AZURE_SPEECH, FAL, EFFECT_ASPECT_RATIOS, VIDEO_EFFECTS, VendorRegistry
from .vendors.base import GenerationResult

logger = logging.getLogger(__name__)

IMAGE_SIZE_PRESETS = {
    "square_hd": "1:1",
    "square": "1:1",
    "portrait_16_9": "9:16",
    "landscape_16_9": "16:9",
    "portrait_4_3": "3:4",
    "landscape_4_3": "4:3",
}
DEFAULT_NEGATIVE_PROMPT = "low quality, bad anatomy, distorted, blurry"

# Served back from storage by extension, so the extension comes only from here
UPLOAD_CONTENT_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
}
MAX_SCRIPT_SCENES = 10


@dataclass
class GeneratedArtifact:
    """What a generation call hands back to the HTTP layer"""
    item: ContentHistoryItem
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.item.id,
            "content_type": self.item.content_type,
            "url": self.item.content_url,
            "prompt": self.item.prompt,
            "is_public": self.item.is_public,
            "metadata": self.item.extra_metadata or {},
            "logs": self.logs,
            "created_at": self.item.created_at,
        }


def require_prompt(prompt: Optional[str], field_name: str = "prompt") -> str:
    if not prompt or not prompt.strip():
        raise InvalidInput(f"Please enter a {field_name}")
    return prompt


def build_image_prompt(prompt: str, style_modifiers: Optional[List[str]] = None) -> str:
    """Append style modifiers ("cinematic", "4k" ...) to the prompt"""
    modifiers = [m.strip() for m in (style_modifiers or []) if m and m.strip()]
    if not modifiers:
        return prompt
    return f"{prompt}, {', '.join(modifiers)}"


class GenerationService:
    """Generation operations for one user"""

    def __init__(
        self,
        db: Session,
        user: User,
        vendors: VendorRegistry,
        storage: StorageProvider,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.db = db
        self.user = user
        self.vendors = vendors
        self.storage = storage
        self.cancel_event = cancel_event
        self.usage = UsageTracker(db, user)
        self.history = HistoryService(db)
        self.api_keys = ApiKeyService(db)

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    async def _store_result(self, result: GenerationResult, prefix: str) -> Dict[str, Any]:
        """Copy the vendor's artifact into our storage; keep the vendor URL if that fails"""
        try:
            url = await self.storage.put_from_url(result.url, prefix)
            return {"url": url, "stored": True}
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Could not copy {result.url} to storage, keeping vendor URL: {e}")
            return {"url": result.url, "stored": False, "storage_error": str(e)}

    async def _run(
        self,
        kind: Optional[str],
        call: Callable[[Callable[[str], None]], Awaitable[GenerationResult]],
        prompt: Optional[str],
        is_public: bool,
        metadata: Dict[str, Any],
    ) -> GeneratedArtifact:
        """
        Reserve one unit of `kind` (None for free operations), run the vendor
        call, store the artifact and record it
        """
        logs: List[str] = []
        if kind is not None:
            self.usage.reserve(kind)

        try:
            result = await call(logs.append)
            stored = await self._store_result(result, f"{result.content_type}s/{self.user.id}")
            item = self.history.record(
                self.user,
                content_type=result.content_type,
                content_url=stored["url"],
                prompt=prompt,
                is_public=is_public,
                metadata={
                    **metadata,
                    "model": result.model,
                    "original_url": result.url,
                    "stored": stored["stored"],
                    **({"storage_error": stored["storage_error"]} if "storage_error" in stored else {}),
                },
            )
        except (Exception, asyncio.CancelledError) as e:
            if kind is not None:
                self.usage.release(kind)
            if isinstance(e, StudioError):
                logger.warning(f"{metadata.get('operation')} failed for user {self.user.id}: {e.code}: {e.message}")
            elif not isinstance(e, asyncio.CancelledError):
                logger.error(f"{metadata.get('operation')} failed for user {self.user.id}: {e}", exc_info=True)
            raise

        logger.info(f"{metadata.get('operation')} succeeded for user {self.user.id} (history item {item.id})")
        return GeneratedArtifact(item=item, logs=logs)

    def _fal(self):
        return self.vendors.fal(self.api_keys.resolve(self.user, FAL))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def text_to_image(
        self,
        prompt: str,
        image_size: str = "square_hd",
        style_modifiers: Optional[List[str]] = None,
        negative_prompt: Optional[str] = None,
        guidance_scale: Optional[float] = None,
        is_public: bool = False,
    ) -> GeneratedArtifact:
        require_prompt(prompt)
        aspect_ratio = IMAGE_SIZE_PRESETS.get(image_size)
        if aspect_ratio is None:
            raise InvalidInput(f"Unknown image size: {image_size}", details={"allowed": sorted(IMAGE_SIZE_PRESETS)})

        client = self._fal()
        full_prompt = build_image_prompt(prompt, style_modifiers)
        poller = self.vendors.poller()
        return await self._run(
            ContentType.IMAGE.value,
            lambda on_log: client.text_to_image(
                full_prompt,
                aspect_ratio,
                poller,
                negative_prompt=negative_prompt or DEFAULT_NEGATIVE_PROMPT,
                guidance_scale=guidance_scale,
                on_log=on_log,
                cancel_event=self.cancel_event,
            ),
            prompt,
            is_public,
            {
                "operation": "text_to_image",
                "image_size": image_size,
                "aspect_ratio": aspect_ratio,
                "style_modifiers": style_modifiers or [],
            },
        )

    async def image_to_video(
        self,
        image_url: str,
        prompt: str,
        provider: str = "fal",
        negative_prompt: Optional[str] = None,
        motion: int = 5,
        duration: int = 5,
        is_public: bool = False,
    ) -> GeneratedArtifact:
        """Animate an image with LTX-Video (fal) or Runway Gen-3 (AIVideoAPI)"""
        require_prompt(prompt)
        require_prompt(image_url, "image URL")
        poller = self.vendors.poller()

        if provider == "fal":
            client = self._fal()

            def call(on_log):
                return client.image_to_video(
                    image_url, prompt, poller,
                    negative_prompt=negative_prompt or DEFAULT_NEGATIVE_PROMPT,
                    on_log=on_log, cancel_event=self.cancel_event,
                )
        elif provider == "runway":
            client = self.vendors.runway(self.api_keys.resolve(self.user, AIVIDEOAPI))

            def call(on_log):
                return client.image_to_video(
                    prompt, image_url, poller, motion=motion, duration=duration,
                    on_log=on_log, cancel_event=self.cancel_event,
                )
        else:
            raise InvalidInput(f"Unknown video provider: {provider}")

        return await self._run(
            ContentType.VIDEO.value,
            call,
            prompt,
            is_public,
            {"operation": "image_to_video", "provider": provider, "source_image": image_url},
        )

    async def video_to_video(
        self,
        video_url: str,
        prompt: str,
        duration: float = 8,
        is_public: bool = False,
    ) -> GeneratedArtifact:
        """Generate a soundtrack for a video with MMAudio"""
        require_prompt(prompt)
        require_prompt(video_url, "video URL")
        client = self._fal()
        poller = self.vendors.poller()
        return await self._run(
            ContentType.VIDEO.value,
            lambda on_log: client.video_to_video(
                video_url, prompt, poller, duration=duration,
                on_log=on_log, cancel_event=self.cancel_event,
            ),
            prompt,
            is_public,
            {"operation": "video_to_video", "source_video": video_url, "duration": duration},
        )

    async def apply_video_effect(
        self,
        media_url: str,
        effect: str,
        aspect_ratio: str = "16:9",
        subject: Optional[str] = None,
        is_public: bool = False,
    ) -> GeneratedArtifact:
        require_prompt(media_url, "media URL")
        if effect not in VIDEO_EFFECTS:
            raise InvalidInput(f"Unknown effect: {effect}", details={"allowed": VIDEO_EFFECTS})
        if aspect_ratio not in EFFECT_ASPECT_RATIOS:
            raise InvalidInput(f"Unsupported aspect ratio: {aspect_ratio}", details={"allowed": EFFECT_ASPECT_RATIOS})

        client = self._fal()
        poller = self.vendors.poller()
        return await self._run(
            ContentType.VIDEO.value,
            lambda on_log: client.video_effect(
                media_url, effect, aspect_ratio, poller, subject=subject,
                on_log=on_log, cancel_event=self.cancel_event,
            ),
            subject or effect,
            is_public,
            {"operation": "video_effect", "effect": effect, "aspect_ratio": aspect_ratio, "source": media_url},
        )

    async def text_to_speech(self, text: str, voice: Optional[str] = None, is_public: bool = False) -> GeneratedArtifact:
        """Synthesise speech; consumes no credits"""
        require_prompt(text, "text")
        client = self.vendors.azure_speech(self.api_keys.resolve(self.user, AZURE_SPEECH))
        voice = voice or "en-US-JennyNeural"

        audio = await client.synthesize(text, voice)
        if not audio:
            raise GenerationFailed("Speech synthesis returned no audio")

        key = self.storage.put(self.storage.generate_key(f"audio/{self.user.id}", ".mp3"), audio, "audio/mpeg")
        item = self.history.record(
            self.user,
            content_type=ContentType.AUDIO.value,
            content_url=self.storage.get_url(key),
            prompt=text,
            is_public=is_public,
            metadata={"operation": "text_to_speech", "voice": voice, "bytes": len(audio), "stored": True},
        )
        logger.info(f"text_to_speech succeeded for user {self.user.id} (history item {item.id})")
        return GeneratedArtifact(item=item, logs=[f"Synthesised speech with {voice}"])

    async def script_to_video(
        self,
        scenes: List[Dict[str, str]],
        aspect_ratio: str = "16:9",
        is_public: bool = False,
    ) -> Dict[str, Any]:
        """
        Turn each scene into an image and then a short clip

        Each scene costs one image and one video credit. A failed step
        releases its own credit and the remaining scenes still run; the call
        fails only if no scene produced a clip.
        """
        if not scenes:
            raise InvalidInput("Add at least one scene")
        if len(scenes) > MAX_SCRIPT_SCENES:
            raise InvalidInput(f"A script can have at most {MAX_SCRIPT_SCENES} scenes")
        for i, scene in enumerate(scenes, start=1):
            require_prompt(scene.get("text"), f"text for scene {i}")
        image_size = size_for_ratio(aspect_ratio)

        self.usage.require_available(ContentType.IMAGE.value, len(scenes))
        self.usage.require_available(ContentType.VIDEO.value, len(scenes))

        results = []
        logs: List[str] = []
        for i, scene in enumerate(scenes, start=1):
            image_prompt = scene.get("image_prompt") or scene["text"]
            logs.append(f"Scene {i}/{len(scenes)}: generating image")
            try:
                image = await self.text_to_image(image_prompt, image_size=image_size, is_public=is_public)
                logs.extend(image.logs)
                logs.append(f"Scene {i}/{len(scenes)}: animating image")
                video = await self.image_to_video(image.item.content_url, scene["text"], is_public=is_public)
                logs.extend(video.logs)
            except StudioError as e:
                logs.append(f"Scene {i}/{len(scenes)} failed: {e.message}")
                results.append({"scene": i, "text": scene["text"], "error": e.message})
                continue
            results.append({
                "scene": i,
                "text": scene["text"],
                "image": image.to_dict(),
                "video": video.to_dict(),
            })

        completed = sum(1 for r in results if "video" in r)
        if completed == 0:
            raise GenerationFailed("No scene could be generated", details={"scenes": results})
        return {"scenes": results, "completed": completed, "logs": logs}

    def _story(self) -> StoryService:
        return StoryService(self._fal(), self.vendors.poller(), self.cancel_event)

    async def generate_character_template(self, story_prompt: str) -> CharacterDetails:
        return await self._story().generate_character_template(story_prompt)

    async def generate_story(
        self,
        story_prompt: str,
        scene_count: int = 4,
        character: Optional[CharacterDetails] = None,
        image_style: Optional[str] = None,
    ) -> List[StoryScene]:
        """Write a scene list for script_to_video; consumes no credits and records no history"""
        return await self._story().generate_story(
            story_prompt, scene_count=scene_count, character=character, image_style=image_style,
        )

    async def upload_media(self, data: bytes, filename: str, content_type: Optional[str]) -> Dict[str, Any]:
        """Store a user upload so vendors can fetch it by URL"""
        if not data:
            raise InvalidInput("Uploaded file is empty")
        if len(data) > config.MAX_UPLOAD_BYTES:
            raise InvalidInput(
                f"File is too large (max {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)",
                details={"max_bytes": config.MAX_UPLOAD_BYTES, "received_bytes": len(data)},
            )
        content_type = (content_type or mimetypes.guess_type(filename or "")[0] or "").split(";")[0].strip().lower()
        extension = UPLOAD_CONTENT_TYPES.get(content_type)
        if extension is None:
            raise InvalidInput(
                f"Unsupported file type: {content_type or 'unknown'}",
                details={"allowed": sorted(UPLOAD_CONTENT_TYPES)},
            )

        key = self.storage.put(self.storage.generate_key(f"uploads/{self.user.id}", extension), data, content_type)
        url = self.storage.get_url(key)
        logger.info(f"User {self.user.id} uploaded {len(data)} bytes ({content_type})")
        return {"url": url, "content_type": content_type, "size": len(data)}


def size_for_ratio(aspect_ratio: str) -> str:
    """First image size preset with the given aspect ratio"""
    for preset, ratio in IMAGE_SIZE_PRESETS.items():
        if ratio == aspect_ratio:
            return preset
    raise InvalidInput(
        f"Unsupported aspect ratio: {aspect_ratio}",
        details={"allowed": sorted(set(IMAGE_SIZE_PRESETS.values()))},
    )
