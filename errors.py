"""Error taxonomy shared by the slot registry, commit pipeline and generation jobs"""

from enum import Enum
from typing import Optional


class ProviderErrorCode(str, Enum):
    """Typed failure codes reported by the generative provider client"""
    ENTITY_NOT_FOUND = "entity_not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_ARGUMENT = "invalid_argument"
    TRANSPORT = "transport"
    UNKNOWN = "unknown"


class SlotStudioError(Exception):
    """Base class for all errors raised by the core"""


class ValidationError(SlotStudioError):
    """Bad caller input; never retried automatically"""


class JobInProgressError(ValidationError):
    """A generation job is already active"""


class CredentialError(SlotStudioError):
    """No usable provider credential and the selection flow did not provide one"""


class ProviderError(SlotStudioError):
    """Remote submission or protocol failure, message surfaced verbatim"""

    def __init__(self, message: str, code: ProviderErrorCode = ProviderErrorCode.UNKNOWN, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status

    @property
    def needs_credential_refresh(self) -> bool:
        return self.code == ProviderErrorCode.ENTITY_NOT_FOUND


class EmptyResultError(SlotStudioError):
    """Provider reported success without a payload"""


class DownloadError(SlotStudioError):
    """Artifact retrieval failed after the job succeeded"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class GenerationTimeoutError(SlotStudioError, TimeoutError):
    """Polling exceeded its wall-clock deadline or attempt limit"""


class JobCancelledError(SlotStudioError):
    """The caller cancelled the job at a suspension point"""
