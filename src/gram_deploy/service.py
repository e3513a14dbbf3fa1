from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from gram_deploy.client import AssetPayload, ClientError, RequestCancelled, SubmissionRequest
from gram_deploy.files import FileError
from gram_deploy.models import DeploymentResult, Manifest, SourceDescriptor, SourceType
from gram_deploy.sources import ResolvedSource, SourceError, resolve_source

logger = logging.getLogger(__name__)

HTML_ERROR_HINT = (
    "This error typically occurs when the server returns an HTML error page "
    "(e.g., 500 error) instead of the expected JSON response. "
    "Check server logs or try again later."
)


class ServiceError(RuntimeError):
    pass


class SourceResolutionFailed(ServiceError):
    def __init__(self, position: int, descriptor: SourceDescriptor, cause: Exception) -> None:
        super().__init__(
            f"Failed to resolve source #{position} ({descriptor.type}: {descriptor.location}): {cause}"
        )
        self.position = position
        self.descriptor = descriptor


class DeploymentError(ServiceError):
    pass


class SubmissionCancelled(ServiceError):
    pass


class DeploymentsAPI(Protocol):
    def create_deployment(
        self,
        request: SubmissionRequest,
        cancel: threading.Event | None = None,
    ) -> DeploymentResult: ...


@dataclass(frozen=True, slots=True)
class SourceSummary:
    location: str
    source_type: SourceType
    content_type: str
    size: int


def new_idempotency_key() -> str:
    return uuid.uuid4().hex


def enhance_deployment_error(exc: Exception) -> Exception:
    message = str(exc)
    if "can't decode" in message and "text/html" in message:
        return DeploymentError(f"{message}\n\n{HTML_ERROR_HINT}")
    return exc


class DeploymentService:
    def __init__(
        self,
        api: DeploymentsAPI,
        resolver: Callable[[SourceDescriptor], ResolvedSource] = resolve_source,
    ) -> None:
        self._api = api
        self._resolver = resolver

    def build_request(
        self,
        manifest: Manifest,
        credential: str,
        project_scope: str,
        idempotency_key: str,
    ) -> SubmissionRequest:
        if not idempotency_key.strip():
            raise ServiceError("Idempotency key cannot be empty")

        return SubmissionRequest(
            credential=credential,
            project_scope=project_scope,
            idempotency_key=idempotency_key,
            assets=tuple(resolve_assets(manifest, self._resolver)),
        )

    def create_deployment(
        self,
        manifest: Manifest,
        credential: str,
        project_scope: str,
        idempotency_key: str,
        cancel: threading.Event | None = None,
    ) -> DeploymentResult:
        """Resolve every source in manifest order and submit one deployment.

        Nothing is retried here: a caller that wants to retry after a failure
        re-invokes this with the same ``idempotency_key``.
        """
        request = self.build_request(manifest, credential, project_scope, idempotency_key)

        if cancel is not None and cancel.is_set():
            raise SubmissionCancelled("Deployment cancelled before it was submitted")

        try:
            result = self._api.create_deployment(request, cancel=cancel)
        except RequestCancelled as exc:
            raise SubmissionCancelled(str(exc)) from exc
        except ClientError as exc:
            enhanced = enhance_deployment_error(exc)
            if enhanced is exc:
                raise
            raise enhanced from exc

        logger.info("Deployment %s created", result.id)
        return result


def resolve_assets(
    manifest: Manifest,
    resolver: Callable[[SourceDescriptor], ResolvedSource] = resolve_source,
) -> list[AssetPayload]:
    """Resolve every source in manifest order, stopping at the first failure."""
    assets: list[AssetPayload] = []
    for position, descriptor in enumerate(manifest.sources, start=1):
        try:
            resolved = resolver(descriptor)
        except (FileError, SourceError) as exc:
            raise SourceResolutionFailed(position, descriptor, exc) from exc

        with resolved:
            content = resolved.read()

        if len(content) != resolved.size:
            raise SourceResolutionFailed(
                position,
                descriptor,
                SourceError(f"expected {resolved.size} bytes, read {len(content)}"),
            )

        logger.info(
            "Resolved %s as %s (%d bytes)",
            descriptor.location,
            resolved.content_type,
            resolved.size,
        )
        assets.append(
            AssetPayload(
                name=resolved.name,
                source_type=resolved.source_type,
                content_type=resolved.content_type,
                content=content,
            )
        )
    return assets


def check_sources(
    manifest: Manifest,
    resolver: Callable[[SourceDescriptor], ResolvedSource] = resolve_source,
) -> list[SourceSummary]:
    return [
        SourceSummary(
            location=descriptor.location,
            source_type=asset.source_type,
            content_type=asset.content_type,
            size=asset.size,
        )
        for descriptor, asset in zip(manifest.sources, resolve_assets(manifest, resolver))
    ]
