"""Slot registry holding the current asset per category"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.asset import Category, SlotAsset

logger = logging.getLogger("MCP_Server")

# Showcase inventory installed when the config file lists no slots
DEMO_INVENTORY: List[Dict[str, Any]] = [
    {
        "asset_id": "v1",
        "category": "BRAND",
        "locator": "/videos/Flow.mp4",
        "poster_locator": "/images/end-banner.png",
        "description": "AI-connected learning, an innovation in education that changes the world.",
        "play_count": 1240,
    },
    {
        "asset_id": "v2",
        "category": "USE_CASE",
        "locator": "https://assets.mixkit.co/videos/preview/mixkit-network-connection-background-3049-large.mp4",
        "poster_locator": "https://picsum.photos/1920/1080?blur=2",
        "description": "Live demo of real-time DKT analysis and personalised problem recommendations.",
        "play_count": 856,
    },
    {
        "asset_id": "v3",
        "category": "VISION",
        "locator": "https://assets.mixkit.co/videos/preview/mixkit-white-network-connection-background-3053-large.mp4",
        "poster_locator": "https://picsum.photos/1920/1080?random=3",
        "description": "25 years of education expertise meets generative AI.",
        "play_count": 542,
    },
]


def load_inventory(entries: Iterable[Dict[str, Any]]) -> List[SlotAsset]:
    """Parse inventory entries into assets; raises ValidationError on a bad entry"""
    return [SlotAsset.from_dict(entry) for entry in entries]


class SlotRegistry:
    """In-memory mapping from category to at most one current asset.

    The registry is volatile and owned by whoever constructs it; managers receive
    it by reference. ``lock`` is re-entrant so that callers performing a
    read-modify-write (commit, play counting) can hold it across the lookup and
    the ``upsert``.
    """

    def __init__(self):
        self._slots: Dict[Category, SlotAsset] = {}
        self._high_water: Dict[Category, int] = {}
        self.lock = threading.RLock()
        logger.info("Initialized SlotRegistry with %d categories", len(Category))

    def upsert(self, category: Category, asset: SlotAsset):
        """Install ``asset`` as current for ``category``, replacing any previous one"""
        with self.lock:
            if asset.category != category:
                asset = asset.copy(category=category)
            replaced = self._slots.get(category)
            self._slots[category] = asset
            self._high_water[category] = max(self._high_water.get(category, 0), asset.version)
        if replaced:
            logger.debug(f"Replaced {category.name} asset {replaced.asset_id} v{replaced.version} with v{asset.version}")
        else:
            logger.debug(f"Inserted {category.name} asset {asset.asset_id} v{asset.version}")

    def seed(self, assets: Iterable[SlotAsset]) -> int:
        """Install a starting inventory as-is, keeping versions and play counts.

        Later entries for the same category win. Returns the number installed.
        """
        count = 0
        with self.lock:
            for asset in assets:
                self.upsert(asset.category, asset)
                count += 1
        logger.info(f"Seeded {count} slot assets ({len(self)} slots occupied)")
        return count

    def remove(self, asset_id: str):
        """Delete the asset with ``asset_id``; unknown ids are ignored"""
        with self.lock:
            for category, asset in list(self._slots.items()):
                if asset.asset_id == asset_id:
                    del self._slots[category]
                    logger.debug(f"Removed {category.name} asset {asset_id}")
                    return
        logger.debug(f"Remove ignored, asset {asset_id} not in registry")

    def current_for(self, category: Category) -> Optional[SlotAsset]:
        with self.lock:
            return self._slots.get(category)

    def get(self, asset_id: str) -> Optional[SlotAsset]:
        with self.lock:
            for asset in self._slots.values():
                if asset.asset_id == asset_id:
                    return asset
        return None

    def all(self) -> List[SlotAsset]:
        """Current assets in category declaration order"""
        with self.lock:
            return [self._slots[category] for category in Category if category in self._slots]

    def snapshot(self) -> Tuple[SlotAsset, ...]:
        """Detached copies of every current asset, for before/after comparisons"""
        with self.lock:
            return tuple(asset.copy() for asset in self.all())

    def high_water_mark(self, category: Category) -> int:
        """Highest version ever committed to ``category`` during this process"""
        with self.lock:
            return self._high_water.get(category, 0)

    def __len__(self) -> int:
        with self.lock:
            return len(self._slots)
