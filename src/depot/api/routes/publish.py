"""
Package publish endpoints.

Push, delete and relist package versions:
- PUT /api/v2/package
- DELETE /api/v2/package/{id}/{version}
- POST /api/v2/package/{id}/{version}
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from depot.api.publish import PackagePublishHandler, PublishOutcome, get_api_key
from depot.core.cancellation import CancellationToken

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_MESSAGES = {
    PublishOutcome.BAD_REQUEST: ("bad_request", "The package upload is missing or invalid"),
    PublishOutcome.UNAUTHORIZED: ("unauthorized", "A valid API key is required"),
    PublishOutcome.NOT_FOUND: ("not_found", "Package version not found"),
    PublishOutcome.CONFLICT: ("conflict", "Package version already exists"),
    PublishOutcome.PAYLOAD_TOO_LARGE: ("payload_too_large", "Package exceeds maximum allowed size"),
    PublishOutcome.INTERNAL_SERVER_ERROR: ("internal_error", "An unexpected error occurred"),
}


def get_publish_handler(request: Request) -> PackagePublishHandler:
    """Return the publish handler created at application start."""
    return request.app.state.publish_handler


def outcome_response(outcome: PublishOutcome) -> Response:
    """
    Convert a publish outcome to an HTTP response.

    Success outcomes have an empty body; errors use the JSON error envelope.
    """
    if outcome.is_success:
        return Response(status_code=outcome.status_code)

    error_type, message = _ERROR_MESSAGES[outcome]
    return JSONResponse(
        status_code=outcome.status_code,
        content={"error": {"type": error_type, "message": message}},
    )


# See: https://docs.microsoft.com/en-us/nuget/api/package-publish-resource#push-a-package
@router.put("/package", status_code=201, response_class=Response)
async def upload_package(
    request: Request,
    handler: PackagePublishHandler = Depends(get_publish_handler),
) -> Response:
    """
    Push a package.

    The package is the first file field of a multipart/form-data body,
    or the raw request body.

    Returns:
        201 when indexed, 400 for a missing or invalid package, 401 without
        a valid API key, 409 if the version exists, 413 if it is too large
    """
    outcome = await handler.upload(request, get_api_key(request), CancellationToken())
    return outcome_response(outcome)


@router.delete("/package/{package_id}/{version}", status_code=204, response_class=Response)
async def delete_package(
    package_id: str,
    version: str,
    request: Request,
    handler: PackagePublishHandler = Depends(get_publish_handler),
) -> Response:
    """
    Delete or unlist a package version, depending on the deletion behavior.

    Returns:
        204 when deleted, 401 without a valid API key, 404 if absent
    """
    outcome = await handler.delete(package_id, version, get_api_key(request))
    return outcome_response(outcome)


@router.post("/package/{package_id}/{version}", status_code=200, response_class=Response)
async def relist_package(
    package_id: str,
    version: str,
    request: Request,
    handler: PackagePublishHandler = Depends(get_publish_handler),
) -> Response:
    """
    Relist an unlisted package version.

    Returns:
        200 when relisted, 401 without a valid API key, 404 if absent
    """
    outcome = await handler.relist(package_id, version, get_api_key(request))
    return outcome_response(outcome)
