"""Prompt suggestions for poster and video generation"""

import logging
import random
from typing import List, Optional, Sequence

from errors import ValidationError
from models.asset import Category

logger = logging.getLogger("MCP_Server")

DEFAULT_SAVED_PROMPTS = (
    "Futuristic AI education environment, blue and white theme, 3d render, high tech",
    "Abstract network connections, data flow, dark background, professional, corporate style",
)
VIDEO_PROMPT_SUGGESTIONS = (
    "A futuristic classroom with holograms floating in the air, cinematic lighting, 4k",
    "A drone shot of a futuristic school campus with solar panels and green roofs",
    "Close up of a student using a transparent tablet with glowing data visualizations",
    "Abstract visualization of neural networks connecting global knowledge nodes",
    "Cyberpunk city street with neon lights reflecting on wet pavement, detailed texture",
)
POSTER_PROMPT_TEMPLATE = (
    "A futuristic, high-tech, abstract background image suitable for a video thumbnail about {label}.\n"
    "Keywords: AI, Education, Data, Blue and Dark Navy Color Palette, Minimalist, Corporate, Professional.\n"
    "Style: 3D render, digital art, high resolution, glowing lines, connectivity.\n"
    "No text."
)
DESCRIPTION_PROMPT_TEMPLATE = (
    "Write a short, professional video description (1 sentence) for a corporate AI video "
    "about {label}. Tone: Innovative, Trustworthy."
)


def poster_prompt_for(category: Category) -> str:
    return POSTER_PROMPT_TEMPLATE.format(label=category.label)


def description_prompt_for(category: Category) -> str:
    return DESCRIPTION_PROMPT_TEMPLATE.format(label=category.label)


class PromptLibrary:
    """Saved poster prompts plus canned video prompt ideas"""

    def __init__(
        self,
        saved: Sequence[str] = DEFAULT_SAVED_PROMPTS,
        suggestions: Sequence[str] = VIDEO_PROMPT_SUGGESTIONS,
        rng: Optional[random.Random] = None,
    ):
        self._saved: List[str] = list(saved)
        self.suggestions = tuple(suggestions)
        self._rng = rng or random.Random()

    @property
    def saved(self) -> List[str]:
        return list(self._saved)

    def save(self, prompt: str) -> bool:
        """Remember a poster prompt; returns False when it was already saved"""
        cleaned = (prompt or "").strip()
        if not cleaned:
            raise ValidationError("Cannot save an empty prompt")
        if cleaned in self._saved:
            return False
        self._saved.append(cleaned)
        logger.info(f"Saved poster prompt ({len(self._saved)} total)")
        return True

    def random_video_prompt(self) -> str:
        return self._rng.choice(self.suggestions)
