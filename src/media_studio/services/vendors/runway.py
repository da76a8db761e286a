"""
AIVideoAPI (Runway) adapter
"""
import logging
from typing import Any, Dict

from ..job_poller import JobState, JobStatus
from ...exceptions import NoResultUrl, VendorError
from .base import GenerationResult, VendorClient

logger = logging.getLogger(__name__)

RUNWAY_MODEL = "gen3"

_STATE_MAP = {
    "done": JobState.COMPLETED,
    "failed": JobState.FAILED,
    "started": JobState.IN_PROGRESS,
    "processing": JobState.IN_PROGRESS,
}


def parse_runway_result(payload: Dict[str, Any]) -> str:
    """result.video_url"""
    result = payload.get("result") or {}
    if isinstance(result, dict) and result.get("video_url"):
        return result["video_url"]
    raise NoResultUrl("Runway job finished without a video URL")


class RunwayVideoClient(VendorClient):
    """Image-plus-description to video via api.aivideoapi.com"""

    vendor = "aivideoapi"

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key}

    async def submit(
        self,
        prompt: str,
        image_url: str,
        motion: int = 5,
        duration: int = 5,
        image_as_end_frame: bool = False,
        flip: bool = False,
    ) -> str:
        """Queue a generation and return its uuid"""
        response = await self._request(
            "POST",
            f"{self.base_url}/runway/generate/imageDescription",
            json={
                "text_prompt": prompt,
                "img_prompt": image_url,
                "model": RUNWAY_MODEL,
                "image_as_end_frame": image_as_end_frame,
                "flip": flip,
                "motion": motion,
                "seed": 0,
                "time": duration,
            },
        )
        job_id = response.json().get("uuid")
        if not job_id:
            raise VendorError("AIVideoAPI did not return a job uuid", vendor=self.vendor)
        logger.info(f"Submitted Runway job {job_id}")
        return job_id

    async def status(self, job_id: str) -> JobStatus:
        response = await self._request("GET", f"{self.base_url}/status/{job_id}", transient=True)
        data = response.json()
        raw_status = data.get("status", "")
        state = _STATE_MAP.get(raw_status, JobState.QUEUED)

        # "done" without a URL yet means the file is still being written
        if state == JobState.COMPLETED and not (data.get("result") or {}).get("video_url"):
            state = JobState.IN_PROGRESS

        return JobStatus(
            state=state,
            logs=[f"Runway status: {raw_status}"] if raw_status else [],
            result=data,
            error=data.get("message") if state == JobState.FAILED else None,
        )

    async def image_to_video(self, prompt: str, image_url: str, poller, motion: int = 5, duration: int = 5,
                             on_log=None, cancel_event=None) -> GenerationResult:
        job_id = await self.submit(prompt, image_url, motion=motion, duration=duration)
        final = await poller.poll(lambda: self.status(job_id), on_log=on_log, cancel_event=cancel_event)
        return GenerationResult(
            url=parse_runway_result(final.result),
            content_type="video",
            raw=final.result,
            model=f"runway/{RUNWAY_MODEL}",
        )
