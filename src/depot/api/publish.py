"""
Package publish protocol handler.

Turns upload, delete and relist requests into calls on the authentication,
indexing, metadata and deletion services and maps their results to
protocol outcomes. Expected branches are returned as PublishOutcome values;
only unexpected failures are exceptions.
"""

import logging
from enum import Enum
from http import HTTPStatus
from pathlib import Path

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from depot.api.uploads import disconnect_watcher, materialize_upload
from depot.core.cancellation import CancellationToken
from depot.core.exceptions import MalformedUploadError, UploadCancelledError, UploadTooLargeError
from depot.core.models import IndexingResult, PackageVersion
from depot.services.auth import API_KEY_HEADER
from depot.services.interfaces import (
    AuthenticationService,
    IndexingService,
    PackageDeletionService,
    PackageService,
)

logger = logging.getLogger(__name__)


class PublishOutcome(Enum):
    """Terminal state of a publish protocol request."""

    CREATED = HTTPStatus.CREATED
    NO_CONTENT = HTTPStatus.NO_CONTENT
    OK = HTTPStatus.OK
    BAD_REQUEST = HTTPStatus.BAD_REQUEST
    UNAUTHORIZED = HTTPStatus.UNAUTHORIZED
    NOT_FOUND = HTTPStatus.NOT_FOUND
    CONFLICT = HTTPStatus.CONFLICT
    PAYLOAD_TOO_LARGE = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    INTERNAL_SERVER_ERROR = HTTPStatus.INTERNAL_SERVER_ERROR

    @property
    def status_code(self) -> int:
        return self.value.value

    @property
    def is_success(self) -> bool:
        return self.status_code < 400


_INDEXING_OUTCOMES = {
    IndexingResult.INVALID_PACKAGE: PublishOutcome.BAD_REQUEST,
    IndexingResult.PACKAGE_ALREADY_EXISTS: PublishOutcome.CONFLICT,
    IndexingResult.SUCCESS: PublishOutcome.CREATED,
}


def get_api_key(request: Request) -> str | None:
    """Extract the publish credential from a request."""
    return request.headers.get(API_KEY_HEADER)


class PackagePublishHandler:
    """
    Publish protocol handler.

    Holds no per-request state; one instance serves all requests
    concurrently.
    """

    def __init__(
        self,
        authentication: AuthenticationService,
        indexer: IndexingService,
        packages: PackageService,
        deletion: PackageDeletionService,
        *,
        scratch_dir: Path | None = None,
        max_package_size: int | None = None,
    ):
        if authentication is None:
            raise ValueError("authentication service is required")
        if indexer is None:
            raise ValueError("indexing service is required")
        if packages is None:
            raise ValueError("package service is required")
        if deletion is None:
            raise ValueError("deletion service is required")

        self._authentication = authentication
        self._indexer = indexer
        self._packages = packages
        self._deletion = deletion
        self._scratch_dir = scratch_dir
        self._max_package_size = max_package_size

    async def _authenticate(self, api_key: str | None) -> bool:
        return await run_in_threadpool(self._authentication.authenticate, api_key)

    async def upload(
        self,
        request: Request,
        api_key: str | None,
        cancellation: CancellationToken,
    ) -> PublishOutcome:
        """
        Handle a package upload.

        The credential is checked before anything about the payload,
        including its declared size. A client disconnect at any point
        before the outcome is known turns the upload into a failure.

        Args:
            request: Incoming request carrying the package payload
            api_key: Caller-supplied credential
            cancellation: Token cancelled when the caller goes away

        Returns:
            CREATED, BAD_REQUEST, CONFLICT, UNAUTHORIZED, PAYLOAD_TOO_LARGE
            or INTERNAL_SERVER_ERROR
        """
        if not await self._authenticate(api_key):
            return PublishOutcome.UNAUTHORIZED

        try:
            async with materialize_upload(
                request,
                cancellation,
                scratch_dir=self._scratch_dir,
                max_size=self._max_package_size,
            ) as upload:
                if upload is None:
                    logger.info("Package upload without payload", extra={"event": "upload_empty"})
                    return PublishOutcome.BAD_REQUEST

                async with disconnect_watcher(request, cancellation):
                    result = await run_in_threadpool(self._indexer.index, upload, cancellation)
                cancellation.raise_if_cancelled()

                return _INDEXING_OUTCOMES[result]

        except MalformedUploadError as e:
            logger.info("Malformed package upload", extra={"event": "upload_malformed", "error": e.message})
            return PublishOutcome.BAD_REQUEST
        except UploadTooLargeError as e:
            logger.warning(
                "Package upload exceeded maximum size",
                extra={"event": "upload_too_large", "limit": e.limit, "received": e.received},
            )
            return PublishOutcome.PAYLOAD_TOO_LARGE
        except UploadCancelledError as e:
            logger.warning("Package upload cancelled", extra={"event": "upload_cancelled", **e.details})
            return PublishOutcome.INTERNAL_SERVER_ERROR
        except Exception:
            logger.exception("Exception thrown during package upload")
            return PublishOutcome.INTERNAL_SERVER_ERROR

    async def delete(self, package_id: str, version: str, api_key: str | None) -> PublishOutcome:
        """
        Handle a package delete.

        A malformed version is reported as NOT_FOUND before the credential
        is checked.

        Returns:
            NO_CONTENT, NOT_FOUND or UNAUTHORIZED
        """
        parsed = PackageVersion.try_parse(version)
        if parsed is None:
            return PublishOutcome.NOT_FOUND

        if not await self._authenticate(api_key):
            return PublishOutcome.UNAUTHORIZED

        if await run_in_threadpool(self._deletion.try_delete, package_id, parsed):
            return PublishOutcome.NO_CONTENT
        return PublishOutcome.NOT_FOUND

    async def relist(self, package_id: str, version: str, api_key: str | None) -> PublishOutcome:
        """
        Handle a package relist.

        A malformed version is reported as NOT_FOUND before the credential
        is checked.

        Returns:
            OK, NOT_FOUND or UNAUTHORIZED
        """
        parsed = PackageVersion.try_parse(version)
        if parsed is None:
            return PublishOutcome.NOT_FOUND

        if not await self._authenticate(api_key):
            return PublishOutcome.UNAUTHORIZED

        if await run_in_threadpool(self._packages.relist, package_id, parsed):
            return PublishOutcome.OK
        return PublishOutcome.NOT_FOUND
