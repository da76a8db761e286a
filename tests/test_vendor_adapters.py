"""
Tests for the fal.ai, AIVideoAPI and Azure Speech adapters against mocked HTTP
"""
import asyncio
import json

import httpx
import pytest

from media_studio.exceptions import GenerationFailed, NoResultUrl, VendorError
from media_studio.services.job_poller import JobPoller, JobState
from media_studio.services.vendors.azure_speech import AzureSpeechClient, build_ssml
from media_studio.services.vendors.fal import (
    COMPLETION_MODEL,
    FalQueueClient,
    IMAGE_TO_VIDEO_MODEL,
    TEXT_TO_IMAGE_MODEL,
    app_id,
    parse_completion_result,
    parse_image_result,
    parse_video_result,
)
from media_studio.services.vendors.runway import RunwayVideoClient, parse_runway_result

from conftest import no_sleep

FAL_BASE = "https://queue.fal.test"
RUNWAY_BASE = "https://aivideo.test"


def fast_poller():
    return JobPoller(initial_interval=0.01, max_interval=0.01, timeout=5, sleep=no_sleep)


def run_with(handler, make_client, operation):
    """Build a client over a MockTransport and run `operation(client)`"""
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await operation(make_client(http))
    return asyncio.run(go())


class TestParsers:

    def test_app_id(self):
        assert app_id("fal-ai/ltx-video/image-to-video") == "fal-ai/ltx-video"
        assert app_id("fal-ai/mmaudio-v2") == "fal-ai/mmaudio-v2"

    def test_image_url(self):
        assert parse_image_result({"images": [{"url": "https://x/1.png"}]}) == "https://x/1.png"

    @pytest.mark.parametrize("payload", [{}, {"images": []}, {"images": [{"content_type": "image/png"}]}])
    def test_image_without_url(self, payload):
        with pytest.raises(NoResultUrl):
            parse_image_result(payload)

    def test_video_url_object_or_string(self):
        assert parse_video_result({"video": {"url": "https://x/v.mp4"}}) == "https://x/v.mp4"
        assert parse_video_result({"video": "https://x/w.mp4"}) == "https://x/w.mp4"

    def test_video_without_url(self):
        with pytest.raises(NoResultUrl):
            parse_video_result({"video": {}})

    def test_runway_result(self):
        assert parse_runway_result({"result": {"video_url": "https://r/v.mp4"}}) == "https://r/v.mp4"
        with pytest.raises(NoResultUrl):
            parse_runway_result({"status": "done"})


class TestFalQueueClient:

    def test_text_to_image_flow(self):
        seen = []
        status_calls = {"n": 0}

        def handler(request: httpx.Request):
            seen.append((request.method, request.url.path))
            assert request.headers["Authorization"] == "Key fal-secret"
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["prompt"] == "a red fox"
                assert body["aspect_ratio"] == "16:9"
                assert body["cfg_scale"] == 7.5
                return httpx.Response(200, json={"request_id": "req-1"})
            if request.url.path.endswith("/status"):
                status_calls["n"] += 1
                if status_calls["n"] == 1:
                    return httpx.Response(200, json={"status": "IN_QUEUE", "queue_position": 2})
                return httpx.Response(200, json={"status": "COMPLETED", "logs": [{"message": "done"}]})
            return httpx.Response(200, json={"images": [{"url": "https://fal.media/fox.png"}]})

        lines = []
        result = run_with(
            handler,
            lambda http: FalQueueClient("fal-secret", FAL_BASE, client=http),
            lambda c: c.text_to_image("a red fox", "16:9", fast_poller(), guidance_scale=7.5, on_log=lines.append),
        )

        assert result.url == "https://fal.media/fox.png"
        assert result.content_type == "image"
        assert result.model == TEXT_TO_IMAGE_MODEL
        assert lines == ["done"]
        assert seen[0] == ("POST", f"/{TEXT_TO_IMAGE_MODEL}")
        assert seen[-1] == ("GET", "/fal-ai/imagen3/requests/req-1")

    def test_status_uses_app_id(self):
        def handler(request):
            assert request.url.path == "/fal-ai/ltx-video/requests/abc/status"
            assert request.url.params["logs"] == "1"
            return httpx.Response(200, json={"status": "IN_PROGRESS", "logs": ["step 3"]})

        status = run_with(
            handler,
            lambda http: FalQueueClient("k", FAL_BASE, client=http),
            lambda c: c.status(IMAGE_TO_VIDEO_MODEL, "abc"),
        )
        assert status.state == JobState.IN_PROGRESS
        assert status.logs == ["step 3"]

    def test_status_with_error_is_failed(self):
        def handler(request):
            return httpx.Response(200, json={"status": "COMPLETED", "error": "content policy"})

        status = run_with(
            handler,
            lambda http: FalQueueClient("k", FAL_BASE, client=http),
            lambda c: c.status(IMAGE_TO_VIDEO_MODEL, "abc"),
        )
        assert status.state == JobState.FAILED
        assert status.error == "content policy"

    def test_submit_error_carries_vendor_message(self):
        def handler(request):
            return httpx.Response(401, json={"detail": "Invalid API key"})

        with pytest.raises(VendorError) as exc_info:
            run_with(
                handler,
                lambda http: FalQueueClient("bad", FAL_BASE, client=http),
                lambda c: c.submit(TEXT_TO_IMAGE_MODEL, {"prompt": "x"}),
            )
        assert exc_info.value.message == "Invalid API key"
        assert exc_info.value.vendor_status == 401
        assert exc_info.value.transient is False

    def test_validation_error_list_detail(self):
        def handler(request):
            return httpx.Response(422, json={"detail": [{"loc": ["body", "prompt"], "msg": "field required"}]})

        with pytest.raises(VendorError) as exc_info:
            run_with(
                handler,
                lambda http: FalQueueClient("k", FAL_BASE, client=http),
                lambda c: c.submit(TEXT_TO_IMAGE_MODEL, {}),
            )
        assert exc_info.value.message == "field required"

    def test_status_5xx_is_transient(self):
        def handler(request):
            return httpx.Response(503, text="upstream unavailable")

        with pytest.raises(VendorError) as exc_info:
            run_with(
                handler,
                lambda http: FalQueueClient("k", FAL_BASE, client=http),
                lambda c: c.status(TEXT_TO_IMAGE_MODEL, "r"),
            )
        assert exc_info.value.transient is True

    def test_failed_job_stops_generation(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"request_id": "r"})
            return httpx.Response(200, json={"status": "IN_PROGRESS", "error": "GPU out of memory"})

        with pytest.raises(GenerationFailed) as exc_info:
            run_with(
                handler,
                lambda http: FalQueueClient("k", FAL_BASE, client=http),
                lambda c: c.image_to_video("https://img/1.png", "pan left", fast_poller()),
            )
        assert "GPU out of memory" in exc_info.value.message

    def test_completed_without_url(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"request_id": "r"})
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": "COMPLETED"})
            return httpx.Response(200, json={"video": None})

        with pytest.raises(NoResultUrl):
            run_with(
                handler,
                lambda http: FalQueueClient("k", FAL_BASE, client=http),
                lambda c: c.video_effect("https://img/1.png", "cakeify", "1:1", fast_poller()),
            )

    def test_completion_flow(self):
        def handler(request):
            if request.method == "POST":
                assert request.url.path == f"/{COMPLETION_MODEL}"
                body = json.loads(request.content)
                assert body["model"] == "google/gemini-flash-1.5"
                assert body["system_prompt"] == "Reply with JSON"
                return httpx.Response(200, json={"request_id": "llm-1"})
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"status": "COMPLETED"})
            assert request.url.path == "/fal-ai/any-llm/requests/llm-1"
            return httpx.Response(200, json={"output": '[{"text": "scene"}]'})

        output = run_with(
            handler,
            lambda http: FalQueueClient("k", FAL_BASE, client=http),
            lambda c: c.completion("Write a story", fast_poller(), system_prompt="Reply with JSON"),
        )
        assert output == '[{"text": "scene"}]'

    @pytest.mark.parametrize("payload", [{}, {"output": ""}, {"output": None}])
    def test_completion_without_output(self, payload):
        with pytest.raises(NoResultUrl):
            parse_completion_result(payload)


class TestRunwayVideoClient:

    def test_image_to_video_flow(self):
        statuses = iter([
            {"status": "started"},
            {"status": "done"},  # file not written yet
            {"status": "done", "result": {"video_url": "https://runway/out.mp4"}},
        ])

        def handler(request):
            assert request.headers["x-api-key"] == "rw-key"
            if request.method == "POST":
                assert request.url.path == "/runway/generate/imageDescription"
                body = json.loads(request.content)
                assert body["text_prompt"] == "waves crashing"
                assert body["img_prompt"] == "https://img/sea.png"
                assert body["model"] == "gen3"
                assert body["motion"] == 7
                assert body["time"] == 10
                return httpx.Response(200, json={"uuid": "job-9"})
            assert request.url.path == "/status/job-9"
            return httpx.Response(200, json=next(statuses))

        lines = []
        result = run_with(
            handler,
            lambda http: RunwayVideoClient("rw-key", RUNWAY_BASE, client=http),
            lambda c: c.image_to_video("waves crashing", "https://img/sea.png", fast_poller(),
                                       motion=7, duration=10, on_log=lines.append),
        )
        assert result.url == "https://runway/out.mp4"
        assert result.content_type == "video"
        assert lines == ["Runway status: started", "Runway status: done"]

    def test_failed_status(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"uuid": "job-1"})
            return httpx.Response(200, json={"status": "failed", "message": "Image could not be processed"})

        with pytest.raises(GenerationFailed) as exc_info:
            run_with(
                handler,
                lambda http: RunwayVideoClient("k", RUNWAY_BASE, client=http),
                lambda c: c.image_to_video("p", "https://img/1.png", fast_poller()),
            )
        assert exc_info.value.message == "Image could not be processed"

    def test_missing_uuid(self):
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(VendorError):
            run_with(
                handler,
                lambda http: RunwayVideoClient("k", RUNWAY_BASE, client=http),
                lambda c: c.submit("p", "https://img/1.png"),
            )


class TestAzureSpeech:

    def test_ssml_escapes_text(self):
        ssml = build_ssml("Fish & <chips>", "en-GB-RyanNeural")
        assert "Fish &amp; &lt;chips&gt;" in ssml
        assert "xml:lang=\"en-GB\"" in ssml
        assert "name=\"en-GB-RyanNeural\"" in ssml

    def test_synthesize_returns_audio(self):
        def handler(request):
            assert request.url.host == "westeurope.tts.speech.microsoft.com"
            assert request.headers["Ocp-Apim-Subscription-Key"] == "az-key"
            assert request.headers["X-Microsoft-OutputFormat"] == "audio-16khz-128kbitrate-mono-mp3"
            assert b"Hello" in request.content
            return httpx.Response(200, content=b"ID3audio")

        audio = run_with(
            handler,
            lambda http: AzureSpeechClient("az-key", "westeurope", client=http),
            lambda c: c.synthesize("Hello"),
        )
        assert audio == b"ID3audio"
