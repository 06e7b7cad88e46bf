import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from managers.artifact_store import ArtifactStore
from managers.commit_pipeline import UploadCommitPipeline
from managers.defaults_manager import DefaultsManager
from managers.engagement import EngagementCounter
from managers.generation_orchestrator import GenerationJobOrchestrator
from managers.media_assistant import MediaAssistant
from managers.prompt_library import PromptLibrary
from managers.slot_registry import DEMO_INVENTORY, SlotRegistry, load_inventory
from provider_client import EnvironmentCredentialStore, GenerativeProviderClient
from tools.configuration import register_configuration_tools
from tools.generation import register_generation_tools
from tools.slots import register_slot_tools

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("MCP_Server")


@dataclass
class AppContext:
    defaults_manager: DefaultsManager
    provider_client: GenerativeProviderClient
    artifact_store: ArtifactStore
    registry: SlotRegistry
    commit_pipeline: UploadCommitPipeline
    engagement: EngagementCounter
    orchestrator: GenerationJobOrchestrator
    prompt_library: PromptLibrary
    media_assistant: MediaAssistant


def build_context(
    defaults_manager: DefaultsManager = None,
    artifact_store: ArtifactStore = None,
    seed_slots: Optional[List[Dict[str, Any]]] = None,
) -> AppContext:
    """Create the registry, provider client and managers, sharing one registry by reference.

    The registry starts from ``seed_slots``, else the config file's ``slots`` list,
    else the demo inventory. An empty list starts with every slot empty.
    """
    defaults_manager = defaults_manager or DefaultsManager()
    settings = defaults_manager.get_all_defaults()

    provider_client = GenerativeProviderClient(
        base_url=settings["provider"]["base_url"],
        credential_store=EnvironmentCredentialStore(),
        video_model=settings["generation"]["model"],
        text_model=settings["assist"]["text_model"],
        image_model=settings["assist"]["image_model"],
        timeout=settings["provider"]["request_timeout"],
    )
    artifact_store = artifact_store or ArtifactStore()
    registry = SlotRegistry()
    if seed_slots is None:
        seed_slots = defaults_manager.get_seed_slots()
    registry.seed(load_inventory(DEMO_INVENTORY if seed_slots is None else seed_slots))
    commit_pipeline = UploadCommitPipeline(registry, artifact_store)
    commit_pipeline.add_listener(lambda confirmation: logger.info(confirmation.message))

    generation = settings["generation"]
    orchestrator = GenerationJobOrchestrator(
        provider_client,
        artifact_store,
        model=generation["model"],
        resolution=generation["resolution"],
        aspect_ratio=generation["aspect_ratio"],
        poll_interval=generation["poll_interval"],
        timeout=generation["timeout"],
        max_attempts=generation["max_attempts"],
        reference_max_dim=generation["reference_max_dim"],
    )

    return AppContext(
        defaults_manager=defaults_manager,
        provider_client=provider_client,
        artifact_store=artifact_store,
        registry=registry,
        commit_pipeline=commit_pipeline,
        engagement=EngagementCounter(registry),
        orchestrator=orchestrator,
        prompt_library=PromptLibrary(),
        media_assistant=MediaAssistant(provider_client, artifact_store),
    )


def create_server(context: AppContext) -> FastMCP:
    @asynccontextmanager
    async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
        """Manage application lifecycle"""
        logger.info("Starting MCP server lifecycle...")
        try:
            if not context.provider_client.check_credential():
                logger.warning("No provider API key found; generation tools will ask for one")
            yield context
        finally:
            logger.info("Shutting down MCP server")

    mcp = FastMCP(
        "Slot_Studio_MCP_Server",
        lifespan=app_lifespan,
        host=os.getenv("SLOT_STUDIO_HOST", "127.0.0.1"),
        port=int(os.getenv("SLOT_STUDIO_PORT", "9000")),
    )
    register_slot_tools(mcp, context.registry, context.commit_pipeline, context.engagement)
    register_generation_tools(
        mcp,
        context.orchestrator,
        context.registry,
        context.commit_pipeline,
        context.defaults_manager,
        context.prompt_library,
        context.media_assistant,
    )
    register_configuration_tools(mcp, context.provider_client, context.defaults_manager)
    logger.info("Registered slot, generation and configuration tools")
    return mcp


def main():
    mcp = create_server(build_context())
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    main()
