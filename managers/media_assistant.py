"""Assistive generation of slot descriptions and poster images"""

import logging
from typing import Optional

from asset_processor import extension_for_image, get_image_metadata
from errors import CredentialError, EmptyResultError, ValidationError
from managers.artifact_store import ArtifactStore, extension_for
from managers.prompt_library import description_prompt_for, poster_prompt_for
from models.asset import Category

logger = logging.getLogger("MCP_Server")


class MediaAssistant:
    """Uses the provider's text and image models to pre-fill upload fields"""

    def __init__(self, client, artifact_store: ArtifactStore):
        self.client = client
        self.artifact_store = artifact_store

    def suggest_description(self, category: Category) -> str:
        """One-sentence description for ``category``; any failure yields an empty string"""
        if not self.client.check_credential():
            logger.info("No provider credential; skipping description suggestion")
            return ""
        try:
            return self.client.generate_text(description_prompt_for(category))
        except Exception as e:
            logger.warning(f"Description generation failed for {category.name}: {e}")
            return ""

    def generate_poster(self, prompt: Optional[str] = None, category: Optional[Category] = None) -> str:
        """Generate a poster image and return its locator.

        Falls back to the category's default poster prompt when ``prompt`` is empty.

        Raises:
            ValidationError: no prompt and no category to derive one from
            CredentialError: no provider credential
            EmptyResultError: the image model returned no image
        """
        prompt = (prompt or "").strip()
        if not prompt:
            if category is None:
                raise ValidationError("A prompt is required to generate a poster")
            prompt = poster_prompt_for(category)
        if not self.client.check_credential():
            raise CredentialError("A provider API key is required to generate posters")

        image_bytes, mime_type = self.client.generate_image(prompt)
        if not image_bytes:
            raise EmptyResultError("Image model returned an empty image")

        metadata = get_image_metadata(image_bytes)
        extension = extension_for_image(image_bytes, default=None) or extension_for(mime_type, default="png")
        locator = self.artifact_store.save(image_bytes, kind="posters", extension=extension)
        logger.info(
            f"Generated poster {metadata.get('width')}x{metadata.get('height')} "
            f"({len(image_bytes)} bytes) -> {locator}"
        )
        return locator
