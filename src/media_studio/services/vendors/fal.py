"""
fal.ai queue API adapter

Submit a job with POST {queue}/{model}, then poll
GET {queue}/{app}/requests/{id}/status and fetch the output from
GET {queue}/{app}/requests/{id}. The app id is the first two segments of the
model id ("fal-ai/ltx-video" for "fal-ai/ltx-video/image-to-video").
"""
import logging
from typing import Any, Dict, Optional

from ..job_poller import JobState, JobStatus
from ...exceptions import NoResultUrl, VendorError
from .base import GenerationResult, VendorClient

logger = logging.getLogger(__name__)

TEXT_TO_IMAGE_MODEL = "fal-ai/imagen3/fast"
IMAGE_TO_VIDEO_MODEL = "fal-ai/ltx-video/image-to-video"
VIDEO_TO_AUDIO_MODEL = "fal-ai/mmaudio-v2"
VIDEO_EFFECTS_MODEL = "fal-ai/wan-effects"
TRANSLATION_MODEL = "fal-ai/text-translation"
COMPLETION_MODEL = "fal-ai/any-llm"
COMPLETION_LLM = "google/gemini-flash-1.5"

VIDEO_EFFECTS = [
    "squish", "muscle", "inflate", "crush", "rotate", "cakeify",
    "baby", "disney-princess", "painting", "pirate-captain",
    "jungle", "samurai", "warrior", "fire", "super-saiyan",
    "gun-shooting", "deflate", "hulk", "bride", "princess", "zen", "assassin",
    "classy", "puppy", "snow-white", "mona-lisa", "vip",
    "timelapse", "tsunami", "zoom-call", "doom-fps", "fus-ro-dah",
    "hug-jesus", "robot-face-reveal",
]
EFFECT_ASPECT_RATIOS = ["16:9", "9:16", "1:1"]

_STATE_MAP = {
    "IN_QUEUE": JobState.QUEUED,
    "IN_PROGRESS": JobState.IN_PROGRESS,
    "COMPLETED": JobState.COMPLETED,
}


def app_id(model: str) -> str:
    return "/".join(model.split("/")[:2])


def parse_image_result(payload: Dict[str, Any]) -> str:
    """images[0].url"""
    images = payload.get("images") or []
    if images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]["url"]
    raise NoResultUrl("Image generation finished without an image URL")


def parse_video_result(payload: Dict[str, Any]) -> str:
    """video.url, or a bare video URL string (wan-effects)"""
    video = payload.get("video")
    if isinstance(video, dict) and video.get("url"):
        return video["url"]
    if isinstance(video, str) and video:
        return video
    raise NoResultUrl("Video generation finished without a video URL")


def parse_translation_result(payload: Dict[str, Any]) -> Optional[str]:
    return payload.get("translated_text") or None


def parse_completion_result(payload: Dict[str, Any]) -> str:
    """output, the generated text"""
    output = payload.get("output")
    if isinstance(output, str) and output.strip():
        return output
    raise NoResultUrl("Text generation finished without any output")


class FalQueueClient(VendorClient):
    """Client for fal.ai's queue REST API"""

    vendor = "fal"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def submit(self, model: str, arguments: Dict[str, Any]) -> str:
        """Queue a job and return its request id"""
        response = await self._request("POST", f"{self.base_url}/{model}", json=arguments)
        request_id = response.json().get("request_id")
        if not request_id:
            raise VendorError("fal.ai did not return a request id", vendor=self.vendor)
        logger.info(f"Submitted fal job {request_id} to {model}")
        return request_id

    async def status(self, model: str, request_id: str) -> JobStatus:
        """Check a queued job, including its log lines"""
        response = await self._request(
            "GET",
            f"{self.base_url}/{app_id(model)}/requests/{request_id}/status",
            params={"logs": 1},
            transient=True,
        )
        data = response.json()
        state = _STATE_MAP.get(data.get("status"), JobState.IN_PROGRESS)
        logs = [
            entry.get("message", "") if isinstance(entry, dict) else str(entry)
            for entry in (data.get("logs") or [])
        ]
        error = data.get("error")
        if error:
            state = JobState.FAILED
        return JobStatus(state=state, logs=logs, error=error, queue_position=data.get("queue_position"))

    async def result(self, model: str, request_id: str) -> Dict[str, Any]:
        """Fetch the output payload of a completed job"""
        response = await self._request("GET", f"{self.base_url}/{app_id(model)}/requests/{request_id}")
        return response.json()

    async def run(self, model: str, arguments: Dict[str, Any], poller, on_log=None, cancel_event=None) -> Dict[str, Any]:
        """Submit, poll to completion and return the output payload"""
        request_id = await self.submit(model, arguments)
        await poller.poll(lambda: self.status(model, request_id), on_log=on_log, cancel_event=cancel_event)
        return await self.result(model, request_id)

    async def text_to_image(self, prompt: str, aspect_ratio: str, poller, negative_prompt: str = None,
                            guidance_scale: float = None, on_log=None, cancel_event=None) -> GenerationResult:
        arguments = {"prompt": prompt, "aspect_ratio": aspect_ratio}
        if negative_prompt:
            arguments["negative_prompt"] = negative_prompt
        if guidance_scale is not None:
            arguments["cfg_scale"] = guidance_scale
        payload = await self.run(TEXT_TO_IMAGE_MODEL, arguments, poller, on_log, cancel_event)
        return GenerationResult(url=parse_image_result(payload), content_type="image",
                                raw=payload, model=TEXT_TO_IMAGE_MODEL)

    async def image_to_video(self, image_url: str, prompt: str, poller, negative_prompt: str = None,
                             on_log=None, cancel_event=None) -> GenerationResult:
        arguments = {"image_url": image_url, "prompt": prompt}
        if negative_prompt:
            arguments["negative_prompt"] = negative_prompt
        payload = await self.run(IMAGE_TO_VIDEO_MODEL, arguments, poller, on_log, cancel_event)
        return GenerationResult(url=parse_video_result(payload), content_type="video",
                                raw=payload, model=IMAGE_TO_VIDEO_MODEL)

    async def video_to_video(self, video_url: str, prompt: str, poller, duration: float = 8,
                             on_log=None, cancel_event=None) -> GenerationResult:
        """Add a generated soundtrack to a video"""
        arguments = {"video_url": video_url, "prompt": prompt, "duration": duration}
        payload = await self.run(VIDEO_TO_AUDIO_MODEL, arguments, poller, on_log, cancel_event)
        return GenerationResult(url=parse_video_result(payload), content_type="video",
                                raw=payload, model=VIDEO_TO_AUDIO_MODEL)

    async def video_effect(self, media_url: str, effect: str, aspect_ratio: str, poller, subject: str = None,
                           on_log=None, cancel_event=None) -> GenerationResult:
        arguments = {
            "subject": subject or "the subject",
            "image_url": media_url,
            "effect_type": effect,
            "aspect_ratio": aspect_ratio,
            "num_frames": 81,
        }
        payload = await self.run(VIDEO_EFFECTS_MODEL, arguments, poller, on_log, cancel_event)
        return GenerationResult(url=parse_video_result(payload), content_type="video",
                                raw=payload, model=VIDEO_EFFECTS_MODEL)

    async def translate(self, text: str, source: str, target: str, poller) -> Optional[str]:
        arguments = {"text": text, "source_language": source, "target_language": target}
        payload = await self.run(TRANSLATION_MODEL, arguments, poller)
        return parse_translation_result(payload)

    async def completion(self, prompt: str, poller, system_prompt: str = None, cancel_event=None) -> str:
        """Run a prompt through fal's LLM gateway and return the raw text"""
        arguments = {"model": COMPLETION_LLM, "prompt": prompt}
        if system_prompt:
            arguments["system_prompt"] = system_prompt
        payload = await self.run(COMPLETION_MODEL, arguments, poller, cancel_event=cancel_event)
        return parse_completion_result(payload)
