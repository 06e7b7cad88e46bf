"""Slot inventory, upload and analytics tools"""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from errors import SlotStudioError
from managers.commit_pipeline import UploadCommitPipeline
from managers.engagement import EngagementCounter
from managers.slot_registry import SlotRegistry
from models.asset import Category

logger = logging.getLogger("MCP_Server")


def register_slot_tools(
    mcp: FastMCP,
    registry: SlotRegistry,
    commit_pipeline: UploadCommitPipeline,
    engagement: EngagementCounter
):
    """Register slot inventory and upload tools with the MCP server"""

    @mcp.tool()
    def list_categories() -> dict:
        """List the fixed presentation slots with their labels and where they are shown."""
        return {
            "categories": [
                {
                    "category": category.name,
                    "label": category.label,
                    "exposure": {"label": category.exposure.label, "path": category.exposure.path},
                    "occupied": registry.current_for(category) is not None,
                }
                for category in Category
            ]
        }

    @mcp.tool()
    def list_slots() -> dict:
        """List every current slot asset in category order."""
        assets = registry.all()
        return {"assets": [asset.to_dict() for asset in assets], "count": len(assets)}

    @mcp.tool()
    def get_slot(category: str) -> dict:
        """Get the current asset for a category (BRAND, USE_CASE or VISION).

        Also reports any upload staged for the category but not yet committed.
        """
        try:
            resolved = Category.parse(category)
        except SlotStudioError as e:
            return {"error": str(e)}
        asset = registry.current_for(resolved)
        staged = commit_pipeline.staged_for(resolved)
        return {
            "category": resolved.name,
            "asset": asset.to_dict() if asset else None,
            "staged": {
                "locator": staged.locator,
                "poster_locator": staged.poster_locator,
                "bytes_size": staged.bytes_size,
                "staged_at": staged.staged_at.isoformat(),
            } if staged else None,
        }

    @mcp.tool()
    def stage_upload(category: str, video_path: str, poster_path: Optional[str] = None) -> dict:
        """Stage a local video file (and optional poster image) for a category.

        Staged files are copied into the media store; call commit_upload to publish them.

        Args:
            category: BRAND, USE_CASE or VISION
            video_path: Path to the video file on the server machine
            poster_path: Optional path to a still image used as the poster
        """
        try:
            resolved = Category.parse(category)
            staged = commit_pipeline.stage(resolved, video_path, poster_path)
        except (SlotStudioError, ValueError, OSError) as e:
            logger.warning(f"stage_upload failed: {e}")
            return {"error": str(e)}
        return {
            "category": resolved.name,
            "locator": staged.locator,
            "poster_locator": staged.poster_locator,
            "bytes_size": staged.bytes_size,
        }

    @mcp.tool()
    def commit_upload(
        category: str,
        locator: Optional[str] = None,
        poster_locator: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        """Publish (or replace) the video for a category.

        Without a locator the staged upload for the category is committed. Replacing
        keeps the asset id and play count, bumps the version, and keeps the old poster
        and description unless new ones are given.
        """
        try:
            resolved = Category.parse(category)
            asset = commit_pipeline.commit(resolved, locator, poster_locator, description)
        except SlotStudioError as e:
            return {"error": str(e)}
        return {
            "success": True,
            "message": f"Uploaded successfully: {resolved.label} (v{asset.version})",
            "asset": asset.to_dict(),
        }

    @mcp.tool()
    def delete_asset(asset_id: str) -> dict:
        """Remove an asset from its slot. Unknown ids are ignored."""
        removed = commit_pipeline.delete(asset_id)
        return {"success": True, "removed": removed, "asset_id": asset_id}

    @mcp.tool()
    def record_play(asset_id: str) -> dict:
        """Count one playback start for an asset."""
        engagement.record_play(asset_id)
        asset = registry.get(asset_id)
        return {"asset_id": asset_id, "found": asset is not None, "play_count": asset.play_count if asset else None}

    @mcp.tool()
    def get_analytics() -> dict:
        """Play counts per slot, for the admin dashboard chart."""
        return {"slots": engagement.summary(), "total_plays": engagement.total_plays()}
