"""
Pytest configuration and fixtures
"""
import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set test environment variables before importing
os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-for-media-studio-tests-only-32-chars"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["STORAGE_PATH"] = tempfile.mkdtemp(prefix="media-studio-tests-")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["FAL_API_KEY"] = "server-fal-key"
os.environ["AIVIDEO_API_KEY"] = "server-aivideo-key"
os.environ["AZURE_SPEECH_KEY"] = "server-azure-key"
os.environ["BANK_ACCOUNTS"] = "KBZ Bank|0123456789|Media Studio Co;AYA Pay|09987654321|Media Studio Co"
os.environ["BCRYPT_ROUNDS"] = "4"  # Fast hashing in tests
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce log noise in tests

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Import after setting env vars
from media_studio.api_server import app
from media_studio.auth import create_access_token, get_password_hash
from media_studio.db.base import Base
from media_studio.db.engine import get_db
from media_studio.db.models.usage import UsageCounter
from media_studio.db.models.user import User
from media_studio.services.job_poller import JobPoller, JobState, JobStatus
from media_studio.services.payment_service import seed_default_packages
from media_studio.services.storage_provider import StorageProvider, get_storage
from media_studio.services.vendors import VendorRegistry, get_vendor_registry
from media_studio.services.vendors.base import GenerationResult
from media_studio.services.vendors.fal import parse_completion_result


# ============================================================================
# Fakes
# ============================================================================

async def no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


class FakeStorage(StorageProvider):
    """In-memory storage; copying from a URL can be made to fail"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.copied: List[str] = []
        self.fail_copy = False

    def put(self, key, data, content_type="application/octet-stream"):
        self.objects[key] = data
        return key

    def get(self, key):
        return self.objects.get(key)

    def delete(self, key):
        return self.objects.pop(key, None) is not None

    def get_url(self, key):
        return f"https://cdn.test/{key}"

    async def put_from_url(self, url, prefix, client=None):
        if self.fail_copy:
            raise httpx.ConnectError("storage unreachable")
        self.copied.append(url)
        key = self.put(self.generate_key(prefix, ".bin"), b"artifact")
        return self.get_url(key)


class FakeFalClient:
    """Stands in for FalQueueClient; records every call and polls through the real JobPoller"""

    def __init__(self, api_key: str, calls: List[dict], error: Optional[Exception] = None,
                 completion_output: str = ""):
        self.api_key = api_key
        self.calls = calls
        self.error = error
        self.completion_output = completion_output

    @staticmethod
    async def _completed_status() -> JobStatus:
        return JobStatus(state=JobState.COMPLETED, logs=["Queued", "Generating"])

    async def _finish(self, operation: str, content_type: str, poller, on_log=None, cancel_event=None,
                      **kwargs) -> GenerationResult:
        self.calls.append({"operation": operation, "api_key": self.api_key, **kwargs})
        await poller.poll(self._completed_status, on_log=on_log, cancel_event=cancel_event)
        if self.error is not None:
            raise self.error
        return GenerationResult(
            url=f"https://fal.media/{operation}/{len(self.calls)}",
            content_type=content_type,
            logs=["Queued", "Generating"],
            raw={},
            model=f"fake/{operation}",
        )

    async def text_to_image(self, prompt, aspect_ratio, poller, negative_prompt=None, guidance_scale=None,
                            on_log=None, cancel_event=None):
        return await self._finish("text_to_image", "image", poller, on_log, cancel_event,
                                  prompt=prompt, aspect_ratio=aspect_ratio)

    async def image_to_video(self, image_url, prompt, poller, negative_prompt=None, on_log=None, cancel_event=None):
        return await self._finish("image_to_video", "video", poller, on_log, cancel_event,
                                  prompt=prompt, image_url=image_url)

    async def video_to_video(self, video_url, prompt, poller, duration=8, on_log=None, cancel_event=None):
        return await self._finish("video_to_video", "video", poller, on_log, cancel_event,
                                  prompt=prompt, video_url=video_url)

    async def video_effect(self, media_url, effect, aspect_ratio, poller, subject=None, on_log=None, cancel_event=None):
        return await self._finish("video_effect", "video", poller, on_log, cancel_event,
                                  effect=effect, media_url=media_url)

    async def translate(self, text, source, target, poller):
        self.calls.append({"operation": "translate", "text": text, "source": source, "target": target})
        if self.error is not None:
            raise self.error
        return f"[{target}] {text}"

    async def completion(self, prompt, poller, system_prompt=None, cancel_event=None):
        self.calls.append({"operation": "completion", "prompt": prompt, "api_key": self.api_key})
        await poller.poll(self._completed_status, cancel_event=cancel_event)
        if self.error is not None:
            raise self.error
        return parse_completion_result({"output": self.completion_output})


class FakeRunwayClient(FakeFalClient):
    async def image_to_video(self, prompt, image_url, poller, motion=5, duration=5, on_log=None, cancel_event=None):
        return await self._finish("runway", "video", poller, on_log, cancel_event, prompt=prompt, image_url=image_url)


class FakeSpeechClient:
    def __init__(self, api_key: str, calls: List[dict]):
        self.api_key = api_key
        self.calls = calls

    async def synthesize(self, text, voice="en-US-JennyNeural"):
        self.calls.append({"operation": "speech", "text": text, "voice": voice, "api_key": self.api_key})
        return b"ID3fake-mp3"


class FakeVendorRegistry(VendorRegistry):
    """Fake vendor clients; set `error` to make every vendor call fail"""

    def __init__(self):
        self.calls: List[dict] = []
        self.error: Optional[Exception] = None
        self.completion_output = ""

    def fal(self, api_key):
        return FakeFalClient(api_key, self.calls, self.error, self.completion_output)

    def runway(self, api_key):
        return FakeRunwayClient(api_key, self.calls, self.error)

    def azure_speech(self, api_key):
        return FakeSpeechClient(api_key, self.calls)

    def poller(self):
        return JobPoller(initial_interval=0.01, max_interval=0.02, timeout=5, sleep=no_sleep)


# ============================================================================
# Database
# ============================================================================

@pytest.fixture(scope="function")
def test_engine():
    """Fresh in-memory SQLite database per test"""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Session:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    seed_default_packages(session)

    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    yield session
    session.close()
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def vendors(db_session) -> FakeVendorRegistry:
    registry = FakeVendorRegistry()
    app.dependency_overrides[get_vendor_registry] = lambda: registry
    return registry


@pytest.fixture(scope="function")
def storage(db_session) -> FakeStorage:
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    return fake


@pytest.fixture(scope="function")
def client(db_session, vendors, storage):
    """Create test client"""
    return TestClient(app)


# ============================================================================
# Users
# ============================================================================

def make_user(db: Session, email: str, is_admin: bool = False, image_credits: int = 100, video_credits: int = 50) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash("testpassword123"),
        full_name=email.split("@")[0].title(),
        is_active=True,
        is_admin=is_admin,
        image_credits=image_credits,
        video_credits=video_credits,
    )
    db.add(user)
    db.flush()
    db.add(UsageCounter(user_id=user.id, image_count=0, video_count=0))
    db.commit()
    db.refresh(user)
    return user


def headers_for(user: User) -> Dict[str, str]:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    return make_user(db_session, "test@example.com")


@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> User:
    return make_user(db_session, "admin@example.com", is_admin=True)


@pytest.fixture(scope="function")
def auth_headers(test_user) -> Dict[str, str]:
    return headers_for(test_user)


@pytest.fixture(scope="function")
def admin_headers(admin_user) -> Dict[str, str]:
    return headers_for(admin_user)
