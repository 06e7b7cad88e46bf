"""Generation job orchestrator: credential check, submit, poll, download"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional

from asset_processor import prepare_reference_image
from errors import (
    CredentialError,
    EmptyResultError,
    GenerationTimeoutError,
    JobCancelledError,
    JobInProgressError,
    ProviderError,
    ProviderErrorCode,
    SlotStudioError,
    ValidationError,
)
from managers.artifact_store import ArtifactStore
from models.job import CancellationToken, GenerationJob, GenerationRequest, JobHandle, JobState
from provider_client import error_from_operation

logger = logging.getLogger("MCP_Server")

STATUS_CREDENTIAL_CHECK = "Checking provider credential..."
STATUS_CREDENTIAL_SELECT = "Waiting for credential selection..."
STATUS_SUBMITTING = "Requesting generation job..."
STATUS_RENDER_STARTED = "Generating video... (about 1-2 minutes)"
STATUS_RENDERING = "Rendering in progress..."
STATUS_DOWNLOADING = "Downloading video..."
STATUS_DONE = "done"
STATUS_UNKNOWN_ERROR = "unknown error"
STATUS_CREDENTIAL_EXPIRED = "Session expired or key is invalid. Please select a key again."

JobListener = Callable[[GenerationJob], None]


def _wait_on_token(seconds: float, token: CancellationToken):
    token.wait(seconds)


class GenerationJobOrchestrator:
    """Drives one generation job at a time against the provider.

    ``start`` runs the whole state machine on the calling thread; every provider
    call and poll wait is a suspension point where the cancellation token is
    checked. Jobs end in COMPLETED with ``result_locator`` set, or in FAILED with
    the error kept on the job. The orchestrator never writes to the slot
    registry; committing a result is the caller's decision.
    """

    def __init__(
        self,
        client,
        artifact_store: ArtifactStore,
        credential_selector: Optional[Callable[[], None]] = None,
        model: Optional[str] = None,
        resolution: str = "720p",
        aspect_ratio: str = "16:9",
        poll_interval: float = 5.0,
        timeout: float = 600.0,
        max_attempts: int = 120,
        reference_max_dim: int = 1280,
        sleep: Callable[[float, CancellationToken], None] = _wait_on_token,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.artifact_store = artifact_store
        self.credential_selector = credential_selector or client.select_credential
        self.model = model
        self.resolution = resolution
        self.aspect_ratio = aspect_ratio
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.reference_max_dim = reference_max_dim
        self._sleep = sleep
        self._clock = clock
        self._active = threading.Lock()
        self._listeners: List[JobListener] = []
        self._token: Optional[CancellationToken] = None
        self.current_job: Optional[GenerationJob] = None

    @property
    def is_active(self) -> bool:
        return self._active.locked()

    @property
    def state(self) -> JobState:
        return self.current_job.state if self.current_job else JobState.IDLE

    @property
    def status_message(self) -> str:
        return self.current_job.status_message if self.current_job else ""

    @property
    def result_locator(self) -> Optional[str]:
        return self.current_job.result_locator if self.current_job else None

    def add_listener(self, listener: JobListener):
        self._listeners.append(listener)

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        """Request cancellation of the active job at its next suspension point"""
        token = self._token
        if token is None or not self.is_active:
            return False
        token.cancel(reason)
        return True

    def start(
        self,
        prompt: str,
        reference_image: Optional[bytes] = None,
        use_reference: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> GenerationJob:
        """Run a generation job to a terminal state and return it.

        Raises:
            ValidationError: empty prompt, or a reference was requested without an image
            JobInProgressError: another job is still running
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("A prompt is required to generate a video")
        if use_reference and not reference_image:
            raise ValidationError("Reference image requested but no poster image is available")
        if not self._active.acquire(blocking=False):
            raise JobInProgressError("A generation job is already in progress")

        try:
            job = GenerationJob(prompt=prompt, reference_image=reference_image if use_reference else None)
            self.current_job = job
            self._token = cancel_token or CancellationToken()
            logger.info("Starting generation job (prompt_len=%d, reference=%s)", len(prompt), use_reference)
            try:
                self._run(job, self._token)
            except Exception as exc:
                self._fail(job, exc)
            return job
        finally:
            self._token = None
            self._active.release()

    def _run(self, job: GenerationJob, token: CancellationToken):
        self._transition(job, JobState.CREDENTIAL_CHECK, STATUS_CREDENTIAL_CHECK)
        self._ensure_credential(job)
        request = self._build_request(job)
        self._check_cancelled(token)

        self._transition(job, JobState.SUBMITTING, STATUS_SUBMITTING)
        handle = self._submit(request)
        job.operation_name = handle.name

        self._transition(job, JobState.POLLING, STATUS_RENDER_STARTED)
        handle = self._poll_until_done(job, handle, token)

        if handle.error:
            raise error_from_operation(handle.error)
        uri = handle.first_uri
        if not uri:
            raise EmptyResultError("No video URI in response")

        self._check_cancelled(token)
        self._transition(job, JobState.DOWNLOADING, STATUS_DOWNLOADING)
        data = self.client.fetch_artifact(uri, self.client.active_credential())
        self._check_cancelled(token)

        job.result_locator = self.artifact_store.save(data, kind="generated", extension="mp4")
        job.finished_at = datetime.now()
        self._transition(job, JobState.COMPLETED, STATUS_DONE)
        logger.info(f"Generation job {job.operation_name} completed: {job.result_locator}")

    def _ensure_credential(self, job: GenerationJob):
        if self.client.check_credential():
            return
        self._set_status(job, STATUS_CREDENTIAL_SELECT)
        try:
            self.credential_selector()
        except CredentialError:
            raise
        except Exception as exc:
            raise CredentialError(f"Error while selecting an API key: {exc}") from exc

    def _build_request(self, job: GenerationJob) -> GenerationRequest:
        request = GenerationRequest(
            prompt=job.prompt,
            model=self.model or getattr(self.client, "video_model", None),
            resolution=self.resolution,
            aspect_ratio=self.aspect_ratio,
        )
        if job.reference_image is not None:
            try:
                reference = prepare_reference_image(job.reference_image, max_dim=self.reference_max_dim)
            except ValueError as e:
                # Same fallback as an unreadable poster upload: generate from text only
                logger.warning(f"Failed to process reference image, generating from text only: {e}")
            else:
                request.reference_image_b64 = reference.b64
                request.reference_mime_type = reference.mime_type
                width, height = reference.size_px
                logger.info(
                    f"Attached reference image {width}x{height} ({reference.bytes_len} bytes, {reference.mime_type})"
                )
        return request

    def _submit(self, request: GenerationRequest) -> JobHandle:
        try:
            return self.client.create_job(request)
        except SlotStudioError:
            raise
        except Exception as exc:
            raise ProviderError(str(exc) or "Failed to submit generation job", code=ProviderErrorCode.UNKNOWN) from exc

    def _poll_until_done(self, job: GenerationJob, handle: JobHandle, token: CancellationToken) -> JobHandle:
        deadline = self._clock() + self.timeout
        while not handle.done:
            if job.poll_attempts >= self.max_attempts:
                raise GenerationTimeoutError(
                    f"Generation {handle.name} did not finish within {self.max_attempts} polls"
                )
            if self._clock() >= deadline:
                raise GenerationTimeoutError(
                    f"Generation {handle.name} did not finish within {self.timeout:g} seconds"
                )
            self._sleep(self.poll_interval, token)
            self._check_cancelled(token)
            handle = self.client.poll_job(handle)
            job.poll_attempts += 1
            self._set_status(job, STATUS_RENDERING)
        return handle

    def _check_cancelled(self, token: CancellationToken):
        if token.cancelled:
            reason = token.reasons[-1] if token.reasons else "cancelled"
            raise JobCancelledError(f"Generation job cancelled: {reason}")

    def _fail(self, job: GenerationJob, exc: Exception):
        job.error = exc
        job.finished_at = datetime.now()
        self._transition(job, JobState.FAILED, f"Error: {exc}" if str(exc) else f"Error: {STATUS_UNKNOWN_ERROR}")
        if isinstance(exc, SlotStudioError):
            logger.warning("Generation job failed (%s): %s", type(exc).__name__, exc)
        else:
            logger.exception("Generation job failed unexpectedly")

        if isinstance(exc, ProviderError) and exc.needs_credential_refresh:
            job.recovery_offered = True
            self._set_status(job, f"{job.status_message} {STATUS_CREDENTIAL_EXPIRED}")
            try:
                self.credential_selector()
            except Exception as selector_error:
                logger.warning(f"Credential re-selection after stale key failed: {selector_error}")

    def _transition(self, job: GenerationJob, state: JobState, message: str):
        logger.debug(f"Generation job {job.state.value} -> {state.value}")
        job.state = state
        self._set_status(job, message)

    def _set_status(self, job: GenerationJob, message: str):
        job.status_message = message
        for listener in self._listeners:
            try:
                listener(job)
            except Exception:
                logger.exception("Generation job listener failed")
