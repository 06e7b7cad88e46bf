"""Video generation, poster and description tools"""

import logging
import threading
from typing import Optional

from mcp.server.fastmcp import FastMCP

from asset_processor import fetch_asset_bytes
from errors import SlotStudioError
from managers.commit_pipeline import UploadCommitPipeline
from managers.defaults_manager import DefaultsManager
from managers.generation_orchestrator import GenerationJobOrchestrator
from managers.media_assistant import MediaAssistant
from managers.prompt_library import PromptLibrary, poster_prompt_for
from managers.slot_registry import SlotRegistry
from models.asset import Category
from models.job import JobState

logger = logging.getLogger("MCP_Server")


def apply_generation_defaults(orchestrator: GenerationJobOrchestrator, defaults_manager: DefaultsManager):
    """Copy the effective generation defaults onto the orchestrator before a run"""
    settings = defaults_manager.get_all_defaults()["generation"]
    orchestrator.model = settings["model"]
    orchestrator.resolution = settings["resolution"]
    orchestrator.aspect_ratio = settings["aspect_ratio"]
    orchestrator.poll_interval = float(settings["poll_interval"])
    orchestrator.timeout = float(settings["timeout"])
    orchestrator.max_attempts = int(settings["max_attempts"])
    orchestrator.reference_max_dim = int(settings["reference_max_dim"])


def resolve_reference_locator(
    category: Optional[Category],
    poster_locator: Optional[str],
    registry: SlotRegistry,
    commit_pipeline: UploadCommitPipeline
) -> Optional[str]:
    """Explicit poster, else the staged poster, else the live poster of the category"""
    if poster_locator:
        return poster_locator
    if category is None:
        return None
    staged = commit_pipeline.staged_for(category)
    if staged and staged.poster_locator:
        return staged.poster_locator
    current = registry.current_for(category)
    return current.poster_locator if current else None


def register_generation_tools(
    mcp: FastMCP,
    orchestrator: GenerationJobOrchestrator,
    registry: SlotRegistry,
    commit_pipeline: UploadCommitPipeline,
    defaults_manager: DefaultsManager,
    prompt_library: PromptLibrary,
    media_assistant: MediaAssistant
):
    """Register generation tools with the MCP server"""

    def _run_job(prompt: str, reference: Optional[bytes], use_reference: bool):
        try:
            orchestrator.start(prompt, reference_image=reference, use_reference=use_reference)
        except SlotStudioError as e:
            logger.warning(f"Background generation job rejected: {e}")

    @mcp.tool()
    def start_video_generation(
        prompt: str,
        use_poster_as_reference: bool = False,
        category: Optional[str] = None,
        poster_locator: Optional[str] = None,
        wait: bool = False,
    ) -> dict:
        """Start generating a video from a text prompt (takes about 1-2 minutes).

        Only one job runs at a time. By default the job runs in the background; poll
        get_generation_status for progress. Use use_generated_video to publish the result.

        Args:
            prompt: Description of the video to generate
            use_poster_as_reference: Animate a poster image instead of generating from text only
            category: Slot whose staged or live poster is used as the reference
            poster_locator: Explicit poster locator to use as the reference
            wait: Block until the job reaches a terminal state
        """
        if not (prompt or "").strip():
            return {"error": "A prompt is required to generate a video"}
        if orchestrator.is_active:
            job = orchestrator.current_job
            return {"error": "A generation job is already in progress", "job": job.to_dict() if job else None}

        reference = None
        if use_poster_as_reference:
            try:
                resolved = Category.parse(category) if category else None
                locator = resolve_reference_locator(resolved, poster_locator, registry, commit_pipeline)
                if not locator:
                    return {"error": "Reference image requested but no poster image is available"}
                reference = fetch_asset_bytes(locator)
            except Exception as e:
                logger.warning(f"Could not load reference poster: {e}")
                return {"error": f"Could not load reference poster: {e}"}

        apply_generation_defaults(orchestrator, defaults_manager)

        if wait:
            try:
                job = orchestrator.start(prompt, reference_image=reference, use_reference=use_poster_as_reference)
            except SlotStudioError as e:
                return {"error": str(e)}
            return {"job": job.to_dict()}

        worker = threading.Thread(
            target=_run_job,
            args=(prompt, reference, use_poster_as_reference),
            name="generation-job",
            daemon=True,
        )
        worker.start()
        return {"started": True, "message": "Generation job submitted; poll get_generation_status for progress"}

    @mcp.tool()
    def get_generation_status() -> dict:
        """Report the state, status message and result of the latest generation job."""
        job = orchestrator.current_job
        return {
            "active": orchestrator.is_active,
            "state": orchestrator.state.value,
            "job": job.to_dict() if job else None,
        }

    @mcp.tool()
    def cancel_video_generation() -> dict:
        """Cancel the running generation job at its next checkpoint."""
        cancelled = orchestrator.cancel("cancelled via tool")
        return {"cancelled": cancelled}

    @mcp.tool()
    def use_generated_video(category: str, description: Optional[str] = None, poster_locator: Optional[str] = None) -> dict:
        """Publish the last completed generated video into a category slot."""
        job = orchestrator.current_job
        if job is None or job.state != JobState.COMPLETED or not job.result_locator:
            return {"error": "No completed generated video to use"}
        try:
            resolved = Category.parse(category)
            asset = commit_pipeline.commit(resolved, job.result_locator, poster_locator, description)
        except SlotStudioError as e:
            return {"error": str(e)}
        return {
            "success": True,
            "message": f"Uploaded successfully: {resolved.label} (v{asset.version})",
            "asset": asset.to_dict(),
        }

    @mcp.tool()
    def random_video_prompt() -> dict:
        """Suggest a video prompt."""
        return {"prompt": prompt_library.random_video_prompt()}

    @mcp.tool()
    def suggest_description(category: str) -> dict:
        """Draft a one-sentence description for a slot. Empty when the model is unavailable."""
        try:
            resolved = Category.parse(category)
        except SlotStudioError as e:
            return {"error": str(e)}
        return {"category": resolved.name, "description": media_assistant.suggest_description(resolved)}

    @mcp.tool()
    def generate_poster(category: str, prompt: Optional[str] = None) -> dict:
        """Generate a poster image for a slot. Pass the returned locator to commit_upload.

        Args:
            category: BRAND, USE_CASE or VISION
            prompt: Image prompt; defaults to the category's poster prompt
        """
        try:
            resolved = Category.parse(category)
            locator = media_assistant.generate_poster(prompt, category=resolved)
        except SlotStudioError as e:
            return {"error": str(e)}
        except Exception as e:
            logger.exception("Poster generation failed")
            return {"error": f"Poster generation failed: {e}"}
        return {"category": resolved.name, "poster_locator": locator}

    @mcp.tool()
    def list_poster_prompts(category: Optional[str] = None) -> dict:
        """List saved poster prompts and the default prompt for a category."""
        default_prompt = None
        if category:
            try:
                default_prompt = poster_prompt_for(Category.parse(category))
            except SlotStudioError as e:
                return {"error": str(e)}
        return {"saved": prompt_library.saved, "default": default_prompt}

    @mcp.tool()
    def save_poster_prompt(prompt: str) -> dict:
        """Save a poster prompt for later reuse."""
        try:
            added = prompt_library.save(prompt)
        except SlotStudioError as e:
            return {"error": str(e)}
        return {"saved": added, "count": len(prompt_library.saved)}
