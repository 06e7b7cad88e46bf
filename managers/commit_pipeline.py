"""Upload commit pipeline: stage an artifact, then install it into a category slot"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from errors import ValidationError
from managers.artifact_store import ArtifactStore
from managers.slot_registry import SlotRegistry
from models.asset import Category, CommitConfirmation, SlotAsset, StagedUpload

logger = logging.getLogger("MCP_Server")

CommitListener = Callable[[CommitConfirmation], None]


def new_asset_id() -> str:
    return f"v-{uuid.uuid4().hex[:12]}"


class UploadCommitPipeline:
    """Validates staged or provider-produced artifacts and commits them to the registry"""

    def __init__(
        self,
        registry: SlotRegistry,
        artifact_store: Optional[ArtifactStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = new_asset_id,
    ):
        self.registry = registry
        self.artifact_store = artifact_store
        self._clock = clock
        self._id_factory = id_factory
        self._staged: Dict[Category, StagedUpload] = {}
        self._listeners: List[CommitListener] = []

    def add_listener(self, listener: CommitListener):
        self._listeners.append(listener)

    def stage(
        self,
        category: Category,
        video: Union[bytes, str, Path],
        poster: Optional[Union[bytes, str, Path]] = None,
        video_extension: str = "mp4",
        poster_extension: str = "png",
    ) -> StagedUpload:
        """Store a local video (and optional poster) for ``category`` ahead of a commit.

        ``video`` and ``poster`` may be raw bytes or paths to existing files. A new
        stage for the same category replaces the previous one.
        """
        if self.artifact_store is None:
            raise ValidationError("Staging requires an artifact store")
        if isinstance(video, bytes) and not video:
            raise ValidationError("Cannot stage an empty video")

        locator = self._store(video, "uploads", video_extension)
        try:
            poster_locator = self._store(poster, "posters", poster_extension) if poster else None
        except (ValueError, OSError):
            self.artifact_store.discard(locator)
            raise
        staged = StagedUpload(
            category=category,
            locator=locator,
            poster_locator=poster_locator,
            bytes_size=len(video) if isinstance(video, bytes) else Path(video).stat().st_size,
        )

        previous = self._staged.get(category)
        self._staged[category] = staged
        if previous:
            self._discard(previous)
        logger.info(f"Staged upload for {category.name}: {locator}")
        return staged

    def staged_for(self, category: Category) -> Optional[StagedUpload]:
        return self._staged.get(category)

    def clear_staged(self, category: Category) -> bool:
        staged = self._staged.pop(category, None)
        if staged:
            self._discard(staged)
            return True
        return False

    def commit(
        self,
        category: Category,
        locator: Optional[str] = None,
        poster_locator: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SlotAsset:
        """Install a new asset as current for ``category``.

        Without an explicit ``locator`` the staged upload for the category is used.
        Version is bumped from the existing slot (or starts at 1), the id and play
        count are carried over, and a missing poster or description falls back to
        the outgoing asset's. An empty-string description clears it.

        Raises:
            ValidationError: nothing to commit for the category
        """
        staged = self._staged.get(category)
        if not locator:
            if not staged:
                raise ValidationError(f"Nothing to upload for {category.label}: no locator and no staged artifact")
            locator = staged.locator
            poster_locator = poster_locator or staged.poster_locator
        else:
            staged = None

        with self.registry.lock:
            existing = self.registry.current_for(category)
            asset = SlotAsset(
                asset_id=existing.asset_id if existing else self._id_factory(),
                category=category,
                locator=locator,
                version=existing.version + 1 if existing else 1,
                updated_at=self._clock(),
                poster_locator=poster_locator or (existing.poster_locator if existing else None),
                description=description if description is not None else (existing.description if existing else None),
                play_count=existing.play_count if existing else 0,
            )
            self.registry.upsert(category, asset)

        if staged:
            del self._staged[category]

        confirmation = CommitConfirmation(category=category, version=asset.version, asset_id=asset.asset_id)
        logger.info("Committed %s (v%d) as %s", category.name, asset.version, asset.asset_id)
        self._notify(confirmation)
        return asset

    def delete(self, asset_id: str) -> bool:
        """Remove an asset from the registry; returns whether anything was removed"""
        existed = self.registry.get(asset_id) is not None
        self.registry.remove(asset_id)
        if existed:
            logger.info(f"Deleted asset {asset_id}")
        return existed

    def _store(self, source: Union[bytes, str, Path], kind: str, extension: str) -> str:
        if isinstance(source, bytes):
            return self.artifact_store.save(source, kind=kind, extension=extension)
        return self.artifact_store.save_file(source, kind=kind)

    def _discard(self, staged: StagedUpload):
        for locator in (staged.locator, staged.poster_locator):
            if locator and self.artifact_store:
                self.artifact_store.discard(locator)

    def _notify(self, confirmation: CommitConfirmation):
        for listener in self._listeners:
            try:
                listener(confirmation)
            except Exception:
                logger.exception("Commit listener failed for %s", confirmation.category.name)
