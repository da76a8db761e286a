"""
Generation API routes
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .auth import get_current_user
from .db.engine import get_db
from .db.models.user import User
from .i18n import get_display_language, translate_message
from .services.api_key_service import ApiKeyService
from .services.generation_service import GenerationService, IMAGE_SIZE_PRESETS, size_for_ratio
from .services.story_service import CharacterDetails, MAX_STORY_SCENES, story_title
from .services.storage_provider import StorageProvider, get_storage
from .services.translation_service import TranslationService
from .services.vendors import FAL, EFFECT_ASPECT_RATIOS, VIDEO_EFFECTS, VendorRegistry, get_vendor_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generation"])

DISCONNECT_CHECK_INTERVAL = 1.0


# ============================================================================
# Request Models
# ============================================================================

class TextToImageRequest(BaseModel):
    prompt: str
    image_size: str = "square_hd"
    style_modifiers: List[str] = []
    negative_prompt: Optional[str] = None
    guidance_scale: Optional[float] = Field(None, ge=0, le=20)
    is_public: bool = False


class ImageToVideoRequest(BaseModel):
    image_url: str
    prompt: str
    negative_prompt: Optional[str] = None
    is_public: bool = False


class RunwayVideoRequest(BaseModel):
    image_url: str
    prompt: str
    motion: int = Field(5, ge=1, le=10)
    duration: int = Field(5, ge=5, le=10)
    is_public: bool = False


class VideoToVideoRequest(BaseModel):
    video_url: str
    prompt: str
    duration: float = Field(8, gt=0, le=30)
    is_public: bool = False


class VideoEffectRequest(BaseModel):
    media_url: str
    effect: str
    aspect_ratio: str = "16:9"
    subject: Optional[str] = None
    is_public: bool = False


class SpeechRequest(BaseModel):
    text: str
    voice: Optional[str] = None
    is_public: bool = False


class ScriptScene(BaseModel):
    text: str
    image_prompt: Optional[str] = None


class ScriptToVideoRequest(BaseModel):
    scenes: List[ScriptScene]
    aspect_ratio: str = "16:9"
    is_public: bool = False


class CharacterDetailsModel(BaseModel):
    main_character: str = ""
    secondary_characters: str = ""
    environment: str = ""
    style_notes: str = ""


class CharacterTemplateRequest(BaseModel):
    prompt: str


class StoryRequest(BaseModel):
    prompt: str
    scene_count: int = Field(4, ge=1, le=MAX_STORY_SCENES)
    image_style: str = "cinematic"
    character: Optional[CharacterDetailsModel] = None
    render_video: bool = False
    aspect_ratio: str = "16:9"
    is_public: bool = False


class TranslateRequest(BaseModel):
    text: str
    source_language: str
    target_language: str


# ============================================================================
# Dependencies
# ============================================================================

async def watch_for_disconnect(
    request: Request,
    cancel_event: asyncio.Event,
    interval: float = DISCONNECT_CHECK_INTERVAL,
) -> None:
    """Set `cancel_event` once the client has gone away"""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info(f"Client disconnected from {request.url.path}, cancelling generation")
            cancel_event.set()
            return
        await asyncio.sleep(interval)


async def get_cancel_event(request: Request):
    """Per-request cancel event for vendor polling, set when the client disconnects"""
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(watch_for_disconnect(request, cancel_event))
    try:
        yield cancel_event
    finally:
        watcher.cancel()


def get_generation_service(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    vendors: VendorRegistry = Depends(get_vendor_registry),
    storage: StorageProvider = Depends(get_storage),
    cancel_event: asyncio.Event = Depends(get_cancel_event),
) -> GenerationService:
    return GenerationService(db, current_user, vendors, storage, cancel_event=cancel_event)


# ============================================================================
# Routes
# ============================================================================

@router.get("/generate/effects")
async def list_effects():
    """Video effects, aspect ratios and image size presets accepted by the generators"""
    return {
        "effects": VIDEO_EFFECTS,
        "aspect_ratios": EFFECT_ASPECT_RATIOS,
        "image_sizes": IMAGE_SIZE_PRESETS,
    }


@router.post("/generate/image")
async def generate_image(
    request: TextToImageRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.text_to_image(
        request.prompt,
        image_size=request.image_size,
        style_modifiers=request.style_modifiers,
        negative_prompt=request.negative_prompt,
        guidance_scale=request.guidance_scale,
        is_public=request.is_public,
    )
    return {**artifact.to_dict(), "message": translate_message("image_generated", lang)}


@router.post("/generate/image-to-video")
async def generate_image_to_video(
    request: ImageToVideoRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.image_to_video(
        request.image_url,
        request.prompt,
        provider="fal",
        negative_prompt=request.negative_prompt,
        is_public=request.is_public,
    )
    return {**artifact.to_dict(), "message": translate_message("video_generated", lang)}


@router.post("/generate/runway-video")
async def generate_runway_video(
    request: RunwayVideoRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.image_to_video(
        request.image_url,
        request.prompt,
        provider="runway",
        motion=request.motion,
        duration=request.duration,
        is_public=request.is_public,
    )
    return {**artifact.to_dict(), "message": translate_message("video_generated", lang)}


@router.post("/generate/video-to-video")
async def generate_video_to_video(
    request: VideoToVideoRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.video_to_video(
        request.video_url,
        request.prompt,
        duration=request.duration,
        is_public=request.is_public,
    )
    return {**artifact.to_dict(), "message": translate_message("video_generated", lang)}


@router.post("/generate/video-effects")
async def generate_video_effect(
    request: VideoEffectRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.apply_video_effect(
        request.media_url,
        request.effect,
        aspect_ratio=request.aspect_ratio,
        subject=request.subject,
        is_public=request.is_public,
    )
    return {**artifact.to_dict(), "message": translate_message("effect_applied", lang, effect=request.effect)}


@router.post("/generate/speech")
async def generate_speech(
    request: SpeechRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    artifact = await service.text_to_speech(request.text, voice=request.voice, is_public=request.is_public)
    return {**artifact.to_dict(), "message": translate_message("speech_generated", lang)}


@router.post("/generate/script-to-video")
async def generate_script_to_video(
    request: ScriptToVideoRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    result = await service.script_to_video(
        [scene.dict() for scene in request.scenes],
        aspect_ratio=request.aspect_ratio,
        is_public=request.is_public,
    )
    return {**result, "message": translate_message("script_video_generated", lang, scenes=result["completed"])}


@router.post("/generate/story/characters")
async def generate_character_template(
    request: CharacterTemplateRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    """Draft character, setting and style notes for a story idea"""
    character = await service.generate_character_template(request.prompt)
    return {"character": character.to_dict(), "message": translate_message("character_template_generated", lang)}


@router.post("/generate/story")
async def generate_story(
    request: StoryRequest,
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    """
    Write a scene list from a story idea

    With render_video the scenes go straight through script-to-video and
    cost one image and one video credit each; otherwise nothing is charged.
    """
    if request.render_video:
        size_for_ratio(request.aspect_ratio)
    character = CharacterDetails(**request.character.dict()) if request.character else None
    scenes = await service.generate_story(
        request.prompt,
        scene_count=request.scene_count,
        character=character,
        image_style=request.image_style,
    )
    response = {
        "title": story_title(request.prompt),
        "scenes": [scene.to_dict() for scene in scenes],
        "message": translate_message("story_generated", lang, scenes=len(scenes)),
    }
    if request.render_video:
        response["video"] = await service.script_to_video(
            [scene.to_dict() for scene in scenes],
            aspect_ratio=request.aspect_ratio,
            is_public=request.is_public,
        )
    return response


@router.post("/translate")
async def translate_text(
    request: TranslateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    vendors: VendorRegistry = Depends(get_vendor_registry),
):
    """Translate prompt text between English, Myanmar and Thai"""
    source = request.source_language
    target = request.target_language
    if source == target or not request.text.strip():
        # Nothing to send to the vendor, so no key is needed
        fal_client = None
    else:
        fal_client = vendors.fal(ApiKeyService(db).resolve(current_user, FAL))

    service = TranslationService(fal_client, vendors.poller())
    translated = await service.translate(request.text, source, target)
    return {"translated_text": translated, "source_language": source, "target_language": target}


@router.post("/uploads")
async def upload_media(
    file: UploadFile = File(...),
    service: GenerationService = Depends(get_generation_service),
    lang: str = Depends(get_display_language),
):
    """Store an image, video or audio file and return a URL the generators can use"""
    data = await file.read()
    result = await service.upload_media(data, file.filename, file.content_type)
    return {**result, "message": translate_message("upload_complete", lang)}
