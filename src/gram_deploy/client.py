from __future__ import annotations

import base64
import json
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import httpx
from pydantic import ValidationError

from gram_deploy import __version__
from gram_deploy.config import Settings
from gram_deploy.models import DeploymentResult, SourceType
from gram_deploy.transport import DiagnosticTransport, Exchange

logger = logging.getLogger(__name__)

CREATE_DEPLOYMENT_PATH = "/rpc/deployments.create"
CANCEL_POLL_SECONDS = 0.05


class ClientError(RuntimeError):
    pass


class DecodeError(ClientError):
    pass


class RequestCancelled(ClientError):
    pass


class RemoteError(ClientError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Gram API returned HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


@dataclass(frozen=True, slots=True)
class AssetPayload:
    name: str
    source_type: SourceType
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class SubmissionRequest:
    credential: str = field(repr=False)
    project_scope: str = field(repr=False)
    idempotency_key: str
    assets: tuple[AssetPayload, ...]


class DeploymentsClient:
    def __init__(
        self,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        on_exchange: Callable[[Exchange], None] | None = None,
    ) -> None:
        self._http = httpx.Client(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout_seconds),
            transport=DiagnosticTransport(transport or httpx.HTTPTransport(), on_exchange),
            headers={"User-Agent": f"gram-deploy/{__version__}"},
        )

    def create_deployment(
        self,
        request: SubmissionRequest,
        cancel: threading.Event | None = None,
    ) -> DeploymentResult:
        """POST the deployment; setting ``cancel`` aborts the call, even mid-flight.

        A cancelled client is closed and cannot be reused.
        """
        logger.info(
            "Creating deployment with %d asset(s), idempotency key %s",
            len(request.assets),
            request.idempotency_key,
        )
        if cancel is None:
            return _decode_result(self._post(request))
        return _decode_result(self._post_cancellable(request, cancel))

    def _post(self, request: SubmissionRequest) -> httpx.Response:
        return self._http.post(
            CREATE_DEPLOYMENT_PATH,
            headers={
                "Gram-Key": request.credential,
                "Gram-Project": request.project_scope,
                "Idempotency-Key": request.idempotency_key,
            },
            json=_create_deployment_body(request),
        )

    def _post_cancellable(
        self,
        request: SubmissionRequest,
        cancel: threading.Event,
    ) -> httpx.Response:
        if cancel.is_set():
            raise RequestCancelled("Deployment request cancelled before it was sent")

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gram-deploy")
        try:
            future = executor.submit(self._post, request)
            while not future.done():
                if cancel.wait(CANCEL_POLL_SECONDS) and not future.done():
                    # closing the pool drops the in-flight connection
                    self._http.close()
                    raise RequestCancelled("Deployment request cancelled while in flight")
            return future.result()
        finally:
            executor.shutdown(wait=False)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> DeploymentsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _create_deployment_body(request: SubmissionRequest) -> dict[str, object]:
    return {
        "idempotency_key": request.idempotency_key,
        "openapiv3_assets": [
            {
                "name": asset.name,
                "content_type": asset.content_type,
                "content": base64.b64encode(asset.content).decode("ascii"),
                "size": asset.size,
            }
            for asset in request.assets
            if asset.source_type == "openapiv3"
        ],
    }


def _decode_result(response: httpx.Response) -> DeploymentResult:
    content_type = response.headers.get("content-type") or "unknown content type"
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(
            f"can't decode {content_type} response body (HTTP {response.status_code}): {exc}"
        ) from exc

    if response.is_error:
        message = payload.get("message") if isinstance(payload, dict) else None
        raise RemoteError(response.status_code, message or response.reason_phrase)

    try:
        return DeploymentResult.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(
            f"can't decode {content_type} response body (HTTP {response.status_code}): {exc}"
        ) from exc
