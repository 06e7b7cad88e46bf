"""Manager classes for the Slot Studio MCP server"""

from managers.artifact_store import ArtifactStore
from managers.commit_pipeline import UploadCommitPipeline
from managers.defaults_manager import DefaultsManager
from managers.engagement import EngagementCounter
from managers.generation_orchestrator import GenerationJobOrchestrator
from managers.media_assistant import MediaAssistant
from managers.prompt_library import PromptLibrary
from managers.slot_registry import SlotRegistry

__all__ = [
    "ArtifactStore",
    "DefaultsManager",
    "EngagementCounter",
    "GenerationJobOrchestrator",
    "MediaAssistant",
    "PromptLibrary",
    "SlotRegistry",
    "UploadCommitPipeline",
]
