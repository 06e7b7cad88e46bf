"""Local storage for staged uploads and generated artifacts"""

import logging
import os
import re
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

logger = logging.getLogger("MCP_Server")

EXTENSION_REGEX = re.compile(r'^[a-z0-9]{1,8}$')
MIME_EXTENSIONS = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}
LOCATOR_SCHEME = "file"


def get_default_storage_root() -> Path:
    """Storage root from SLOT_STUDIO_STORAGE_DIR, else ./media under the cwd"""
    configured = os.getenv("SLOT_STUDIO_STORAGE_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.cwd() / "media"


def canonicalize_path(path: Union[str, Path], must_exist: bool = True) -> Path:
    """Resolve path to absolute real path (handles symlinks).

    Raises:
        ValueError: If path cannot be resolved and must_exist=True
    """
    try:
        return Path(path).resolve(strict=must_exist)
    except (OSError, RuntimeError) as e:
        raise ValueError(f"Cannot resolve path {path}: {e}")


def is_within(child_path: Union[str, Path], parent_path: Union[str, Path], child_must_exist: bool = True) -> bool:
    """Check if child_path is within parent_path after symlink resolution"""
    try:
        child_real = canonicalize_path(child_path, must_exist=child_must_exist)
        parent_real = canonicalize_path(parent_path, must_exist=True)
    except ValueError:
        return False
    return child_real.is_relative_to(parent_real)


def extension_for(mime_type: Optional[str], default: str = "bin") -> str:
    if not mime_type:
        return default
    return MIME_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), default)


class ArtifactStore:
    """Writes binary artifacts under a root directory and hands back file locators.

    Locators are ``file://`` URIs; the rest of the system treats them as opaque.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or get_default_storage_root()).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized ArtifactStore at {self.root}")

    def save(self, data: bytes, kind: str = "video", extension: str = "mp4") -> str:
        """Atomically write ``data`` to ``<root>/<kind>/<stamp>_<id>.<ext>`` and return its locator"""
        extension = extension.lstrip(".").lower()
        if not EXTENSION_REGEX.match(extension):
            raise ValueError(f"Invalid artifact extension: {extension!r}")
        if not re.match(r'^[a-z0-9_-]+$', kind):
            raise ValueError(f"Invalid artifact kind: {kind!r}")

        target_dir = self.root / kind
        target_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        target_path = target_dir / f"{stamp}_{uuid.uuid4().hex[:12]}.{extension}"
        temp_path = target_path.with_suffix(target_path.suffix + ".tmp")

        try:
            with open(temp_path, "wb") as f:
                f.write(data)
            temp_path.replace(target_path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

        logger.info(f"Stored {kind} artifact {target_path.name} ({len(data)} bytes)")
        return target_path.as_uri()

    def save_file(self, source_path: Union[str, Path], kind: str = "video") -> str:
        """Copy an existing file into the store"""
        source = canonicalize_path(source_path)
        if not source.is_file():
            raise ValueError(f"Not a file: {source}")
        extension = source.suffix.lstrip(".").lower() or "bin"
        target_dir = self.root / kind
        target_dir.mkdir(parents=True, exist_ok=True)
        target_path = target_dir / f"{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:12]}.{extension}"
        shutil.copy2(source, target_path)
        logger.info(f"Stored {kind} artifact {target_path.name} from {source}")
        return target_path.as_uri()

    def owns(self, locator: Optional[str]) -> bool:
        if not locator:
            return False
        try:
            return is_within(self.path_for(locator), self.root)
        except ValueError:
            return False

    def path_for(self, locator: str) -> Path:
        """Translate a locator produced by this store back into a path"""
        parsed = urlparse(locator)
        if parsed.scheme != LOCATOR_SCHEME:
            raise ValueError(f"Locator {locator!r} is not a local artifact")
        path = Path(unquote(parsed.path))
        if not is_within(path, self.root, child_must_exist=False):
            raise ValueError(f"Locator {locator!r} points outside the artifact store")
        return path

    def read(self, locator: str) -> bytes:
        return self.path_for(locator).read_bytes()

    def discard(self, locator: str) -> bool:
        """Delete the artifact behind ``locator`` if this store owns it"""
        if not self.owns(locator):
            return False
        path = self.path_for(locator)
        if path.exists():
            path.unlink()
            logger.debug(f"Discarded artifact {path.name}")
            return True
        return False
