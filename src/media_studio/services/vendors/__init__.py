"""
Vendor API adapters and the registry that builds them per request
"""
from ...config import config
from ..job_poller import JobPoller
from .base import GenerationResult, VendorClient
from .fal import FalQueueClient, VIDEO_EFFECTS, EFFECT_ASPECT_RATIOS
from .runway import RunwayVideoClient
from .azure_speech import AzureSpeechClient

# Names used for saved keys in the api_keys table
FAL = "fal"
AIVIDEOAPI = "aivideoapi"
AZURE_SPEECH = "azure_speech"

VENDOR_NAMES = [FAL, AIVIDEOAPI, AZURE_SPEECH]


class VendorRegistry:
    """
    Builds vendor clients for a resolved API key

    Swapped out in tests through app.dependency_overrides.
    """

    def fal(self, api_key: str) -> FalQueueClient:
        return FalQueueClient(api_key, config.FAL_QUEUE_URL)

    def runway(self, api_key: str) -> RunwayVideoClient:
        return RunwayVideoClient(api_key, config.AIVIDEO_API_URL)

    def azure_speech(self, api_key: str) -> AzureSpeechClient:
        return AzureSpeechClient(api_key, config.AZURE_SPEECH_REGION)

    def poller(self) -> JobPoller:
        return JobPoller()


_registry = VendorRegistry()


def get_vendor_registry() -> VendorRegistry:
    """FastAPI dependency"""
    return _registry


__all__ = [
    "GenerationResult",
    "VendorClient",
    "FalQueueClient",
    "RunwayVideoClient",
    "AzureSpeechClient",
    "VendorRegistry",
    "get_vendor_registry",
    "VIDEO_EFFECTS",
    "EFFECT_ASPECT_RATIOS",
    "FAL",
    "AIVIDEOAPI",
    "AZURE_SPEECH",
    "VENDOR_NAMES",
]
