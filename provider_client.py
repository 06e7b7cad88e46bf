import base64
import logging
import os
from typing import Any, Dict, Optional, Tuple

import requests

from errors import CredentialError, DownloadError, EmptyResultError, ProviderError, ProviderErrorCode
from models.job import GenerationRequest, JobHandle

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ProviderClient")

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
CREDENTIAL_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

STATUS_CODES = {
    "NOT_FOUND": ProviderErrorCode.ENTITY_NOT_FOUND,
    "PERMISSION_DENIED": ProviderErrorCode.PERMISSION_DENIED,
    "UNAUTHENTICATED": ProviderErrorCode.PERMISSION_DENIED,
    "INVALID_ARGUMENT": ProviderErrorCode.INVALID_ARGUMENT,
}
HTTP_CODES = {
    404: ProviderErrorCode.ENTITY_NOT_FOUND,
    401: ProviderErrorCode.PERMISSION_DENIED,
    403: ProviderErrorCode.PERMISSION_DENIED,
    400: ProviderErrorCode.INVALID_ARGUMENT,
}
GRPC_CODES = {
    3: ProviderErrorCode.INVALID_ARGUMENT,
    5: ProviderErrorCode.ENTITY_NOT_FOUND,
    7: ProviderErrorCode.PERMISSION_DENIED,
    16: ProviderErrorCode.PERMISSION_DENIED,
}


class EnvironmentCredentialStore:
    """API key taken from the environment; selection re-reads it"""

    def __init__(self, env_vars=CREDENTIAL_ENV_VARS):
        self.env_vars = tuple(env_vars)
        self._key = self._read_env()

    def _read_env(self) -> Optional[str]:
        for name in self.env_vars:
            value = os.getenv(name)
            if value:
                return value.strip()
        return None

    def has_credential(self) -> bool:
        return bool(self._key)

    def select(self):
        self._key = self._read_env()
        if not self._key:
            raise CredentialError(
                f"No API key found. Set one of {', '.join(self.env_vars)} and try again."
            )
        logger.info("Provider credential reloaded from environment")

    def current(self) -> Optional[str]:
        return self._key


class StaticCredentialStore:
    def __init__(self, key: Optional[str] = None):
        self._key = key

    def has_credential(self) -> bool:
        return bool(self._key)

    def select(self):
        if not self._key:
            raise CredentialError("No API key configured")

    def set(self, key: Optional[str]):
        self._key = key

    def current(self) -> Optional[str]:
        return self._key


def error_from_payload(status_code: int, payload: Any) -> ProviderError:
    """Map a Google-style ``{"error": {...}}`` body to a typed ProviderError"""
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or f"Provider request failed: {status_code}"
        code = STATUS_CODES.get(str(error.get("status", "")).upper()) or HTTP_CODES.get(status_code, ProviderErrorCode.UNKNOWN)
    else:
        message = f"Provider request failed: {status_code}"
        code = HTTP_CODES.get(status_code, ProviderErrorCode.UNKNOWN)
    return ProviderError(message, code=code, status=status_code)


def error_from_operation(error: Dict[str, Any]) -> ProviderError:
    """Map the ``error`` block of a finished long-running operation"""
    message = error.get("message") or "Video generation failed"
    code = STATUS_CODES.get(str(error.get("status", "")).upper()) or GRPC_CODES.get(error.get("code"), ProviderErrorCode.UNKNOWN)
    return ProviderError(message, code=code)


class GenerativeProviderClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        credential_store=None,
        video_model: str = DEFAULT_VIDEO_MODEL,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credential_store = credential_store or EnvironmentCredentialStore()
        self.video_model = video_model
        self.text_model = text_model
        self.image_model = image_model
        self.timeout = timeout
        self.session = session or requests.Session()

    def check_credential(self) -> bool:
        return self.credential_store.has_credential()

    def select_credential(self):
        self.credential_store.select()

    def active_credential(self) -> str:
        key = self.credential_store.current()
        if not key:
            raise CredentialError("No provider credential selected")
        return key

    def create_job(self, request: GenerationRequest) -> JobHandle:
        model = request.model or self.video_model
        logger.info("Submitting video generation to %s...", model)
        data = self._call("post", f"models/{model}:predictLongRunning", json=request.to_payload())
        handle = self._parse_operation(data)
        logger.info(f"Queued generation operation: {handle.name}")
        return handle

    def poll_job(self, handle: JobHandle) -> JobHandle:
        """Refresh an operation; a handle that is already done is returned unchanged"""
        if handle.done:
            return handle
        data = self._call("get", handle.name)
        return self._parse_operation(data, fallback_name=handle.name)

    def fetch_artifact(self, uri: str, credential: Optional[str] = None) -> bytes:
        """Download a generated artifact; the provider requires the key on the URI"""
        key = credential or self.active_credential()
        separator = "&" if "?" in uri else "?"
        try:
            response = self.session.get(f"{uri}{separator}key={key}", timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Video download failed: {e}")
        if not 200 <= response.status_code < 300:
            raise DownloadError(f"Video download failed: {response.status_code}", status=response.status_code)
        logger.info(f"Downloaded artifact ({len(response.content)} bytes)")
        return response.content

    def generate_text(self, prompt: str) -> str:
        data = self._call("post", f"models/{self.text_model}:generateContent", json={
            "contents": [{"parts": [{"text": prompt}]}]
        })
        texts = [part["text"] for part in self._parts(data) if part.get("text")]
        if not texts:
            raise EmptyResultError("Text model returned no content")
        return "".join(texts).strip()

    def generate_image(self, prompt: str) -> Tuple[bytes, str]:
        data = self._call("post", f"models/{self.image_model}:generateContent", json={
            "contents": [{"parts": [{"text": prompt}]}]
        })
        for part in self._parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return base64.b64decode(inline["data"]), mime_type
        raise EmptyResultError("Image model returned no image")

    def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {"x-goog-api-key": self.active_credential()}
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = getattr(self.session, method)(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"Provider API error: {e}", code=ProviderErrorCode.TRANSPORT)

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code != 200:
            error = error_from_payload(response.status_code, payload)
            logger.warning("Provider returned %s for %s: %s", response.status_code, path, error)
            raise error
        if not isinstance(payload, dict):
            raise ProviderError("Provider returned a malformed response")
        return payload

    def _parse_operation(self, data: Dict[str, Any], fallback_name: str = "") -> JobHandle:
        response = data.get("response") or {}
        video_response = response.get("generateVideoResponse") or response
        samples = video_response.get("generatedSamples") or video_response.get("generatedVideos") or []
        uris = tuple(
            sample["video"]["uri"]
            for sample in samples
            if isinstance(sample, dict) and (sample.get("video") or {}).get("uri")
        )
        return JobHandle(
            name=data.get("name") or fallback_name,
            done=bool(data.get("done")),
            video_uris=uris,
            error=data.get("error"),
        )

    def _parts(self, data: Dict[str, Any]):
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        content = candidates[0].get("content") or {}
        return content.get("parts") or []
