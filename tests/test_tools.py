"""Tests for the MCP tool layer

Tools are registered against a recording stand-in for FastMCP and called directly.

Run with pytest from project root:
    pytest tests/test_tools.py -v
"""

import logging
import threading
from unittest.mock import MagicMock

import pytest

from managers.defaults_manager import DefaultsManager
from managers.engagement import EngagementCounter
from managers.generation_orchestrator import GenerationJobOrchestrator
from managers.media_assistant import MediaAssistant
from managers.prompt_library import PromptLibrary
from models.asset import Category
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools, resolve_reference_locator
from tools.slots import register_slot_tools

from conftest import FakeProviderClient, done_handle, make_image_bytes

VIDEO_URI = "https://provider.example/files/video-1:download?alt=media"


class RecordingMCP:
    """Collects functions registered through ``@mcp.tool()``"""

    def __init__(self):
        self.tools = {}

    def tool(self, name=None, description=None):
        def decorator(fn):
            self.tools[name or fn.__name__] = fn
            return fn
        return decorator


class GatedProviderClient(FakeProviderClient):
    """Fake client whose submit call blocks until the test releases it"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_job(self, request):
        self.entered.set()
        self.release.wait(5)
        return super().create_job(request)


def generation_threads():
    return [t for t in threading.enumerate() if t.name == "generation-job"]


def join_generation_threads():
    for worker in generation_threads():
        worker.join(5)


def register_with(orchestrator, registry, pipeline, defaults_manager):
    mcp = RecordingMCP()
    register_generation_tools(
        mcp, orchestrator, registry, pipeline, defaults_manager, PromptLibrary(), MagicMock(spec=MediaAssistant)
    )
    return mcp.tools


@pytest.fixture
def defaults_manager(tmp_path, monkeypatch):
    for name in ("SLOT_STUDIO_POLL_INTERVAL", "SLOT_STUDIO_GENERATION_TIMEOUT", "SLOT_STUDIO_MAX_POLL_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    return DefaultsManager(config_file=tmp_path / "config.json")


@pytest.fixture
def slot_tools(registry, pipeline):
    mcp = RecordingMCP()
    register_slot_tools(mcp, registry, pipeline, EngagementCounter(registry))
    return mcp.tools


@pytest.fixture
def generation_setup(registry, pipeline, store, fake_clock, defaults_manager):
    client = FakeProviderClient(poll_results=[done_handle(VIDEO_URI)], artifact=b"generated-mp4")
    orchestrator = GenerationJobOrchestrator(client, store, sleep=fake_clock.sleep, clock=fake_clock)
    assistant = MagicMock(spec=MediaAssistant)
    mcp = RecordingMCP()
    register_generation_tools(mcp, orchestrator, registry, pipeline, defaults_manager, PromptLibrary(), assistant)
    return mcp.tools, client, orchestrator, assistant


class TestSlotTools:
    """Tests for slot inventory and upload tools"""

    def test_list_categories(self, slot_tools):
        """Test every category is listed with its exposure location"""
        result = slot_tools["list_categories"]()

        assert [c["category"] for c in result["categories"]] == ["BRAND", "USE_CASE", "VISION"]
        assert all(c["occupied"] is False for c in result["categories"])

    def test_commit_and_replace(self, slot_tools):
        """Test commit_upload creates then replaces, reporting the version"""
        first = slot_tools["commit_upload"]("brand", locator="a.mp4", description="Brand film")
        second = slot_tools["commit_upload"]("Brand Identity", locator="b.mp4")

        assert first["message"] == "Uploaded successfully: Brand Identity (v1)"
        assert second["asset"]["version"] == 2
        assert second["asset"]["asset_id"] == first["asset"]["asset_id"]
        assert second["asset"]["description"] == "Brand film"
        assert slot_tools["list_slots"]()["count"] == 1

    def test_unknown_category(self, slot_tools):
        """Test invalid categories are reported as errors"""
        assert "error" in slot_tools["commit_upload"]("TRAILER", locator="a.mp4")
        assert "error" in slot_tools["get_slot"]("TRAILER")

    def test_commit_without_locator_or_stage(self, slot_tools):
        """Test committing nothing is an error"""
        assert "error" in slot_tools["commit_upload"]("VISION")

    def test_stage_then_commit(self, slot_tools, tmp_path):
        """Test a staged file is visible on the slot and committed without a locator"""
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"mp4")

        staged = slot_tools["stage_upload"]("USE_CASE", str(video))
        slot = slot_tools["get_slot"]("USE_CASE")
        committed = slot_tools["commit_upload"]("USE_CASE")

        assert slot["asset"] is None
        assert slot["staged"]["locator"] == staged["locator"]
        assert committed["asset"]["locator"] == staged["locator"]

    def test_stage_missing_file(self, slot_tools, tmp_path):
        """Test staging a missing file returns an error"""
        assert "error" in slot_tools["stage_upload"]("BRAND", str(tmp_path / "missing.mp4"))

    def test_play_and_analytics(self, slot_tools):
        """Test record_play feeds the analytics summary"""
        asset = slot_tools["commit_upload"]("VISION", locator="v.mp4")["asset"]
        slot_tools["record_play"](asset["asset_id"])
        played = slot_tools["record_play"](asset["asset_id"])

        analytics = slot_tools["get_analytics"]()

        assert played == {"asset_id": asset["asset_id"], "found": True, "play_count": 2}
        assert analytics["total_plays"] == 2
        assert slot_tools["record_play"]("ghost")["found"] is False

    def test_delete_asset(self, slot_tools):
        """Test delete_asset empties the slot"""
        asset = slot_tools["commit_upload"]("BRAND", locator="a.mp4")["asset"]

        assert slot_tools["delete_asset"](asset["asset_id"])["removed"] is True
        assert slot_tools["get_slot"]("BRAND")["asset"] is None
        assert slot_tools["delete_asset"](asset["asset_id"])["removed"] is False


class TestGenerationTools:
    """Tests for generation tools"""

    def test_generate_and_use(self, generation_setup, registry, store):
        """Test a waited job can be published into a slot"""
        tools, client, orchestrator, _ = generation_setup

        result = tools["start_video_generation"]("A drone shot of a campus", wait=True)
        status = tools["get_generation_status"]()
        used = tools["use_generated_video"]("VISION", description="Generated")

        assert result["job"]["state"] == "completed"
        assert status["state"] == "completed"
        assert status["active"] is False
        assert used["asset"]["version"] == 1
        assert store.read(registry.current_for(Category.VISION).locator) == b"generated-mp4"

    def test_empty_prompt(self, generation_setup):
        """Test an empty prompt is rejected before any job starts"""
        tools, client, _, _ = generation_setup

        assert "error" in tools["start_video_generation"]("   ")
        assert client.created == []

    def test_reference_without_poster(self, generation_setup):
        """Test requesting a reference for an empty slot is an error"""
        tools, client, _, _ = generation_setup

        result = tools["start_video_generation"]("prompt", use_poster_as_reference=True, category="BRAND", wait=True)

        assert "no poster image" in result["error"]
        assert client.created == []

    def test_reference_from_staged_poster(self, generation_setup, pipeline):
        """Test the staged poster of a category is used as the reference"""
        tools, client, _, _ = generation_setup
        pipeline.stage(Category.BRAND, b"video", poster=make_image_bytes("PNG"))

        result = tools["start_video_generation"]("prompt", use_poster_as_reference=True, category="BRAND", wait=True)

        assert result["job"]["uses_reference_image"] is True
        assert client.created[0].reference_mime_type == "image/png"

    def test_use_generated_video_without_result(self, generation_setup):
        """Test nothing can be published before a job completes"""
        tools, _, _, _ = generation_setup

        assert "error" in tools["use_generated_video"]("BRAND")

    def test_cancel_when_idle(self, generation_setup):
        """Test cancelling without a job reports nothing cancelled"""
        tools, _, _, _ = generation_setup

        assert tools["cancel_video_generation"]() == {"cancelled": False}

    def test_defaults_applied_to_orchestrator(self, generation_setup, defaults_manager):
        """Test runtime generation defaults reach the next job"""
        tools, client, orchestrator, _ = generation_setup
        defaults_manager.set_defaults("generation", {"aspect_ratio": "9:16", "model": "veo-custom"})

        tools["start_video_generation"]("prompt", wait=True)

        assert client.created[0].aspect_ratio == "9:16"
        assert client.created[0].model == "veo-custom"
        assert orchestrator.aspect_ratio == "9:16"

    def test_assistant_tools(self, generation_setup):
        """Test description and poster tools delegate to the assistant"""
        tools, _, _, assistant = generation_setup
        assistant.suggest_description.return_value = "A film about our brand."
        assistant.generate_poster.return_value = "file:///media/posters/p.png"

        description = tools["suggest_description"]("brand")
        poster = tools["generate_poster"]("VISION")

        assert description == {"category": "BRAND", "description": "A film about our brand."}
        assert poster == {"category": "VISION", "poster_locator": "file:///media/posters/p.png"}
        assistant.generate_poster.assert_called_once_with(None, category=Category.VISION)

    def test_prompt_tools(self, generation_setup):
        """Test saving and listing poster prompts"""
        tools, _, _, _ = generation_setup

        saved = tools["save_poster_prompt"]("Glass city at dusk")
        listing = tools["list_poster_prompts"]("VISION")

        assert saved["saved"] is True
        assert "Glass city at dusk" in listing["saved"]
        assert "AX Vision Film" in listing["default"]
        assert tools["random_video_prompt"]()["prompt"]

    def test_background_job_runs_to_completion(self, registry, pipeline, store, fake_clock, defaults_manager):
        """Test a background start is visible as active, blocks a second start and can be published"""
        client = GatedProviderClient(poll_results=[done_handle(VIDEO_URI)], artifact=b"background-mp4")
        orchestrator = GenerationJobOrchestrator(client, store, sleep=fake_clock.sleep, clock=fake_clock)
        tools = register_with(orchestrator, registry, pipeline, defaults_manager)

        started = tools["start_video_generation"]("A drone shot of a campus")
        try:
            assert client.entered.wait(5)
            running = tools["get_generation_status"]()
            second = tools["start_video_generation"]("Another prompt")
        finally:
            client.release.set()
            join_generation_threads()

        assert started["started"] is True
        assert running["active"] is True
        assert running["state"] == "submitting"
        assert second["error"] == "A generation job is already in progress"
        assert second["job"]["state"] == "submitting"
        assert len(client.created) == 1
        assert tools["get_generation_status"]()["state"] == "completed"
        used = tools["use_generated_video"]("BRAND")
        assert used["success"] is True
        assert store.read(registry.current_for(Category.BRAND).locator) == b"background-mp4"

    def test_background_rejection_is_logged(
        self, registry, pipeline, store, fake_clock, defaults_manager, monkeypatch, caplog
    ):
        """Test a background start that loses the single-flight race is logged, not raised"""
        client = GatedProviderClient(poll_results=[done_handle(VIDEO_URI)])
        orchestrator = GenerationJobOrchestrator(client, store, sleep=fake_clock.sleep, clock=fake_clock)
        tools = register_with(orchestrator, registry, pipeline, defaults_manager)

        with caplog.at_level(logging.WARNING, logger="MCP_Server"):
            tools["start_video_generation"]("first")
            try:
                assert client.entered.wait(5)
                blocked = set(generation_threads())
                monkeypatch.setattr(GenerationJobOrchestrator, "is_active", property(lambda self: False))
                second = tools["start_video_generation"]("second")
                for worker in set(generation_threads()) - blocked:
                    worker.join(5)
            finally:
                client.release.set()
                join_generation_threads()

        assert second["started"] is True
        assert len(client.created) == 1
        assert any("Background generation job rejected" in r.getMessage() for r in caplog.records)

    def test_active_without_job_record(self, registry, pipeline, store, fake_clock, defaults_manager, monkeypatch):
        """Test the in-progress reply tolerates a job record that is not yet set"""
        orchestrator = GenerationJobOrchestrator(FakeProviderClient(), store, sleep=fake_clock.sleep, clock=fake_clock)
        tools = register_with(orchestrator, registry, pipeline, defaults_manager)
        monkeypatch.setattr(GenerationJobOrchestrator, "is_active", property(lambda self: True))

        result = tools["start_video_generation"]("prompt")

        assert result == {"error": "A generation job is already in progress", "job": None}

    def test_resolve_reference_prefers_explicit(self, registry, pipeline):
        """Test explicit poster beats staged and live posters"""
        pipeline.commit(Category.BRAND, locator="a.mp4", poster_locator="live.png")

        assert resolve_reference_locator(Category.BRAND, "explicit.png", registry, pipeline) == "explicit.png"
        assert resolve_reference_locator(Category.BRAND, None, registry, pipeline) == "live.png"
        assert resolve_reference_locator(None, None, registry, pipeline) is None


class TestConfigurationTools:
    """Tests for configuration tools"""

    def test_set_defaults_updates_client(self, defaults_manager):
        """Test new model defaults are pushed to the provider client"""
        client = MagicMock()
        mcp = RecordingMCP()
        register_configuration_tools(mcp, client, defaults_manager)

        result = mcp.tools["set_defaults"](generation={"model": "veo-next"}, assist={"text_model": "gemini-next"})

        assert result["success"] is True
        assert client.video_model == "veo-next"
        assert client.text_model == "gemini-next"

    def test_set_defaults_errors(self, defaults_manager):
        """Test validation errors are collected"""
        mcp = RecordingMCP()
        register_configuration_tools(mcp, MagicMock(), defaults_manager)

        result = mcp.tools["set_defaults"](generation={"poll_interval": 0})

        assert result["success"] is False
        assert result["errors"]

    def test_provider_status(self, defaults_manager):
        """Test credential availability is reported"""
        client = MagicMock()
        client.check_credential.return_value = False
        mcp = RecordingMCP()
        register_configuration_tools(mcp, client, defaults_manager)

        assert mcp.tools["get_provider_status"]()["credential_available"] is False
