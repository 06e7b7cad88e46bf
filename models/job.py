"""Generation job data models"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class JobState(str, Enum):
    IDLE = "idle"
    CREDENTIAL_CHECK = "credential_check"
    SUBMITTING = "submitting"
    POLLING = "polling"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


@dataclass
class GenerationRequest:
    """Payload for a video generation call"""
    prompt: str
    model: str
    resolution: str = "720p"
    aspect_ratio: str = "16:9"
    number_of_videos: int = 1
    reference_image_b64: Optional[str] = None
    reference_mime_type: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        instance: Dict[str, Any] = {"prompt": self.prompt}
        if self.reference_image_b64:
            instance["image"] = {
                "bytesBase64Encoded": self.reference_image_b64,
                "mimeType": self.reference_mime_type or "image/png",
            }
        return {
            "instances": [instance],
            "parameters": {
                "sampleCount": self.number_of_videos,
                "resolution": self.resolution,
                "aspectRatio": self.aspect_ratio,
            },
        }


@dataclass(frozen=True)
class JobHandle:
    """Provider view of a long-running generation operation"""
    name: str
    done: bool = False
    video_uris: Tuple[str, ...] = ()
    error: Optional[Dict[str, Any]] = None

    @property
    def first_uri(self) -> Optional[str]:
        return self.video_uris[0] if self.video_uris else None


@dataclass
class GenerationJob:
    """One run of the generation workflow (transient)"""
    prompt: str
    reference_image: Optional[bytes] = None
    state: JobState = JobState.IDLE
    status_message: str = ""
    result_locator: Optional[str] = None
    operation_name: Optional[str] = None
    error: Optional[Exception] = None
    poll_attempts: int = 0
    recovery_offered: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "status_message": self.status_message,
            "result_locator": self.result_locator,
            "operation_name": self.operation_name,
            "error_type": self.error_type,
            "error": str(self.error) if self.error else None,
            "poll_attempts": self.poll_attempts,
            "recovery_offered": self.recovery_offered,
            "uses_reference_image": self.reference_image is not None,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class CancellationToken:
    """Cooperative cancellation flag checked at every suspension point"""

    def __init__(self):
        self._event = threading.Event()
        self.reasons: List[str] = []

    def cancel(self, reason: str = "cancelled by caller"):
        self.reasons.append(reason)
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; returns True if cancelled meanwhile"""
        return self._event.wait(timeout)
