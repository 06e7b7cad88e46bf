"""Slot and asset data models"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from errors import ValidationError


@dataclass(frozen=True)
class ExposureInfo:
    """Where a category is displayed on the public site"""
    label: str
    path: str


class Category(Enum):
    """Fixed set of presentation slots"""
    BRAND = "Brand Identity"
    USE_CASE = "AI Service Use Case"
    VISION = "AX Vision Film"

    @property
    def label(self) -> str:
        return self.value

    @property
    def short_name(self) -> str:
        return self.value.split(" ")[0]

    @property
    def exposure(self) -> ExposureInfo:
        return EXPOSURE_LOCATIONS[self]

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """Resolve a member name (case-insensitive) or label to a Category"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            token = value.strip()
            for member in cls:
                if token.upper() == member.name or token == member.value:
                    return member
        choices = ", ".join(member.name for member in cls)
        raise ValidationError(f"Unknown category {value!r}. Expected one of: {choices}")


EXPOSURE_LOCATIONS: Dict[Category, ExposureInfo] = {
    Category.BRAND: ExposureInfo(label="Home > Hero section", path="/"),
    Category.USE_CASE: ExposureInfo(label="Home > Service teaser section", path="/"),
    Category.VISION: ExposureInfo(label="AI Edutech > Vision section", path="/edutech"),
}


@dataclass
class SlotAsset:
    """Current media asset occupying a category slot"""
    asset_id: str
    category: Category
    locator: str
    version: int
    updated_at: datetime
    poster_locator: Optional[str] = None
    description: Optional[str] = None
    play_count: int = 0

    @property
    def title(self) -> str:
        return f"{self.category.label} Video v{self.version}"

    def copy(self, **changes) -> "SlotAsset":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlotAsset":
        """Build an asset from a config or inventory entry.

        Accepts ``asset_id`` (or ``id``), ``category`` and ``locator``; version
        defaults to 1, updated_at to now and play_count to 0.

        Raises:
            ValidationError: missing or malformed fields
        """
        asset_id = data.get("asset_id") or data.get("id")
        locator = data.get("locator")
        if not asset_id or not locator or "category" not in data:
            raise ValidationError(f"Slot entry needs asset_id, category and locator: {data!r}")

        updated_at = data.get("updated_at")
        try:
            version = int(data.get("version", 1))
            play_count = int(data.get("play_count", 0))
            if isinstance(updated_at, str):
                updated_at = datetime.fromisoformat(updated_at)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed slot entry {asset_id!r}: {e}")
        if version < 1 or play_count < 0:
            raise ValidationError(f"Slot entry {asset_id!r} needs version >= 1 and play_count >= 0")

        return cls(
            asset_id=str(asset_id),
            category=Category.parse(data["category"]),
            locator=str(locator),
            version=version,
            updated_at=updated_at or datetime.now(),
            poster_locator=data.get("poster_locator"),
            description=data.get("description"),
            play_count=play_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["category"] = self.category.name
        data["category_label"] = self.category.label
        data["updated_at"] = self.updated_at.isoformat()
        data["title"] = self.title
        data["exposure"] = {"label": self.category.exposure.label, "path": self.category.exposure.path}
        return data


@dataclass
class StagedUpload:
    """Artifact staged for a category but not yet committed"""
    category: Category
    locator: str
    poster_locator: Optional[str] = None
    bytes_size: int = 0
    staged_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class CommitConfirmation:
    """Signal emitted after a successful commit"""
    category: Category
    version: int
    asset_id: str

    @property
    def message(self) -> str:
        return f"Uploaded successfully: {self.category.label} (v{self.version})"
