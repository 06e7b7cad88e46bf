"""Data models for the Slot Studio MCP server"""

from models.asset import EXPOSURE_LOCATIONS, Category, CommitConfirmation, ExposureInfo, SlotAsset, StagedUpload
from models.job import CancellationToken, GenerationJob, GenerationRequest, JobHandle, JobState

__all__ = [
    "EXPOSURE_LOCATIONS",
    "CancellationToken",
    "Category",
    "CommitConfirmation",
    "ExposureInfo",
    "GenerationJob",
    "GenerationRequest",
    "JobHandle",
    "JobState",
    "SlotAsset",
    "StagedUpload",
]
