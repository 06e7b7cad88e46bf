"""Play counting and view analytics"""

import logging
from typing import Any, Dict, List

from managers.slot_registry import SlotRegistry

logger = logging.getLogger("MCP_Server")


class EngagementCounter:
    """Increments per-asset play counts on playback start"""

    def __init__(self, registry: SlotRegistry):
        self.registry = registry

    def record_play(self, asset_id: str):
        """Add exactly one play to ``asset_id``; unknown ids are a no-op.

        Every play-start counts, so a replay in the same session is a new play.
        """
        with self.registry.lock:
            asset = self.registry.get(asset_id)
            if asset is None:
                logger.debug(f"Ignoring play for unknown asset {asset_id}")
                return
            self.registry.upsert(asset.category, asset.copy(play_count=asset.play_count + 1))

    def summary(self) -> List[Dict[str, Any]]:
        """Views per slot, in registry order"""
        return [
            {
                "category": asset.category.name,
                "name": asset.category.short_name,
                "title": asset.title,
                "views": asset.play_count,
            }
            for asset in self.registry.all()
        ]

    def total_plays(self) -> int:
        return sum(asset.play_count for asset in self.registry.all())
