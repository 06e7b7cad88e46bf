"""Shared fixtures and fakes for the Slot Studio test suite"""

from datetime import datetime, timedelta
from io import BytesIO

import pytest
from PIL import Image

from errors import CredentialError
from managers.artifact_store import ArtifactStore
from managers.commit_pipeline import UploadCommitPipeline
from managers.slot_registry import SlotRegistry
from models.job import JobHandle


class FakeProviderClient:
    """In-memory stand-in for GenerativeProviderClient"""

    video_model = "fake-video-model"

    def __init__(self, poll_results=None, credential=True, artifact=b"\x00\x00\x00\x18ftypmp42"):
        self.credential = credential
        self.poll_results = list(poll_results or [])
        self.initial_handle = JobHandle(name="models/fake/operations/op-1")
        self.artifact = artifact
        self.created = []
        self.polled = []
        self.fetched = []
        self.select_calls = 0
        self.select_error = None
        self.create_error = None
        self.fetch_error = None

    def check_credential(self):
        return self.credential

    def select_credential(self):
        self.select_calls += 1
        if self.select_error:
            raise self.select_error
        self.credential = True

    def active_credential(self):
        if not self.credential:
            raise CredentialError("No provider credential selected")
        return "test-key"

    def create_job(self, request):
        self.created.append(request)
        if self.create_error:
            raise self.create_error
        return self.initial_handle

    def poll_job(self, handle):
        if handle.done:
            return handle
        self.polled.append(handle)
        if self.poll_results:
            return self.poll_results.pop(0)
        return handle

    def fetch_artifact(self, uri, credential=None):
        self.fetched.append((uri, credential))
        if self.fetch_error:
            raise self.fetch_error
        return self.artifact


class FakeClock:
    """Monotonic clock advanced by the orchestrator's sleep hook"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds, token):
        self.sleeps.append(seconds)
        self.now += seconds


class SteppingClock:
    """datetime source that moves forward one minute per call"""

    def __init__(self, start=datetime(2025, 1, 1, 9, 0, 0)):
        self.current = start

    def __call__(self):
        self.current += timedelta(minutes=1)
        return self.current


def make_image_bytes(fmt="PNG", size=(64, 48), mode="RGB", color=(20, 40, 200)):
    buf = BytesIO()
    Image.new(mode, size, color if mode == "RGB" else color + (255,)).save(buf, format=fmt)
    return buf.getvalue()


def done_handle(*uris, error=None):
    return JobHandle(name="models/fake/operations/op-1", done=True, video_uris=tuple(uris), error=error)


def pending_handle():
    return JobHandle(name="models/fake/operations/op-1", done=False)


@pytest.fixture
def registry():
    return SlotRegistry()


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(tmp_path / "media")


@pytest.fixture
def pipeline(registry, store):
    return UploadCommitPipeline(registry, store, clock=SteppingClock())


@pytest.fixture
def fake_client():
    return FakeProviderClient()


@pytest.fixture
def fake_clock():
    return FakeClock()
