"""
Client for the remote image annotation service.

One POST per image asks for label detection and web detection. Every outcome, including
unreadable files, HTTP errors and malformed payloads, is folded into a VisionResult;
`VisionClient.analyze` never raises.
"""

import base64
import time
from types import TracebackType
from typing import Any, Self

import aiofiles
import httpx
from loguru import logger

from vision_batch.errors import (
    EncodingError,
    RemoteServiceError,
    UnexpectedClientError,
)
from vision_batch.models import ImageInput, Label, VisionResult


DEFAULT_VISION_URL = "https://vision.googleapis.com/v1/images:annotate"
LABEL_MAX_RESULTS = 20
WEB_MAX_RESULTS = 1
UNKNOWN_ERROR = "Unknown"


async def encode_image(file: ImageInput) -> str:
    """Read `file` and return its bytes as base64 text."""
    try:
        async with aiofiles.open(file.source, "rb") as f:
            data = await f.read()
    except OSError as exc:
        msg = f"Could not read {file.name}: {exc.strerror or exc}"
        raise EncodingError(msg) from exc
    return base64.b64encode(data).decode("ascii")


def build_request_body(content: str) -> dict[str, Any]:
    """
    Annotation request for a single base64-encoded image.

    Examples:
        >>> build_request_body("aGk=")["requests"][0]["features"][0]
        {'type': 'LABEL_DETECTION', 'maxResults': 20}

    """
    return {
        "requests": [
            {
                "image": {"content": content},
                "features": [
                    {"type": "LABEL_DETECTION", "maxResults": LABEL_MAX_RESULTS},
                    {"type": "WEB_DETECTION", "maxResults": WEB_MAX_RESULTS},
                ],
            },
        ],
    }


def _error_message(payload: Any) -> str | None:  # noqa: ANN401
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return str(error.get("message") or "") or None
    return str(error) or None


def parse_response(payload: dict[str, Any]) -> VisionResult:
    """
    Pull labels and the best-guess description out of an annotation response.

    Missing sections yield empty values.

    Examples:
        >>> parse_response({"responses": [{}]})
        VisionResult(labels=(), description='', error=None)

    """
    responses = payload.get("responses") or []
    first = responses[0] if responses else {}
    if not isinstance(first, dict):
        msg = f"unexpected response entry: {type(first).__name__}"
        raise UnexpectedClientError(msg)

    labels = tuple(Label.model_validate(item) for item in first.get("labelAnnotations") or [])

    description = ""
    guesses = (first.get("webDetection") or {}).get("bestGuessLabels") or []
    if guesses and isinstance(guesses[0], dict):
        description = str(guesses[0].get("label") or "")

    return VisionResult(labels=labels, description=description)


class VisionClient:
    """
    Analyze images with the remote vision service.

    Pass an existing `httpx.AsyncClient` to share connections; otherwise one is created on
    `__aenter__` and closed on `__aexit__`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        endpoint: str = DEFAULT_VISION_URL,
    ) -> None:
        self._http_client = http_client
        self._own_client = http_client is None
        self.endpoint = endpoint

    async def __aenter__(self) -> Self:
        if self._own_client and self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._own_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(self, content: str, api_key: str) -> VisionResult:
        if self._http_client is None:
            msg = "HTTP client not initialized. Use the client as an async context manager."
            raise UnexpectedClientError(msg)

        response = await self._http_client.post(
            self.endpoint,
            params={"key": api_key},
            json=build_request_body(content),
        )

        try:
            payload = response.json()
        except ValueError:
            if response.is_success:
                raise
            payload = None

        error_message = _error_message(payload)
        if not response.is_success or error_message is not None:
            message = error_message or response.reason_phrase or UNKNOWN_ERROR
            logger.warning("vision_api_error", status=response.status_code, error=message)
            raise RemoteServiceError(f"API: {message}")

        if not isinstance(payload, dict):
            msg = f"unexpected response body: {type(payload).__name__}"
            raise UnexpectedClientError(msg)
        return parse_response(payload)

    async def analyze(self, file: ImageInput, api_key: str) -> VisionResult:
        """
        Run one annotation request for `file`.

        Args:
            file: Image to analyze
            api_key: Service key, sent as the `key` query parameter

        Returns:
            VisionResult with labels and description, or with `error` set on any failure.

        """
        t0 = time.perf_counter()
        try:
            content = await encode_image(file)
            result = await self._request(content, api_key)
        except (EncodingError, RemoteServiceError) as exc:
            logger.error("vision_analysis_failed", error=str(exc))
            return VisionResult.from_error(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("vision_client_unexpected_error", error=str(exc))
            return VisionResult.from_error(str(exc) or type(exc).__name__)

        logger.info(
            "vision_analysis_completed",
            seconds=round(time.perf_counter() - t0, 3),
            labels=len(result.labels),
            has_description=bool(result.description),
        )
        return result
