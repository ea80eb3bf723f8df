"""
Upload stream materialization.

Copies the package payload of a publish request into a temporary scratch
file so the indexing service can read it several times without the payload
ever being held in memory.

The payload is the first file field of a form request, otherwise the raw
request body. Both are read through a single size-limited body stream, so
form parts are bounded by the same maximum package size as raw bodies.
"""

import asyncio
import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, AsyncIterator, BinaryIO

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser
from starlette.requests import ClientDisconnect

from depot.core.cancellation import CancellationToken
from depot.core.exceptions import MalformedUploadError, UploadTooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

SCRATCH_PREFIX = "depot-upload-"
SCRATCH_SUFFIX = ".tmp"

MULTIPART_CONTENT_TYPE = "multipart/form-data"
URLENCODED_CONTENT_TYPE = "application/x-www-form-urlencoded"
FORM_CONTENT_TYPES = (MULTIPART_CONTENT_TYPE, URLENCODED_CONTENT_TYPE)


def media_type(request: Request) -> str:
    """Return the lower-cased media type of the request body, without parameters."""
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


def has_form_content_type(request: Request) -> bool:
    """Check whether the request body is form encoded."""
    return media_type(request) in FORM_CONTENT_TYPES


def declared_content_length(request: Request) -> int | None:
    """Return the declared Content-Length, or None if absent or malformed."""
    value = request.headers.get("content-length")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def first_upload_file(form: FormData) -> UploadFile | None:
    """Return the first file field of a parsed form, in submission order."""
    for _, value in form.multi_items():
        if isinstance(value, UploadFile):
            return value
    return None


async def limited_body(
    request: Request,
    cancellation: CancellationToken,
    max_size: int | None = None,
) -> AsyncGenerator[bytes, None]:
    """
    Yield the request body, enforcing the size limit and cancellation.

    Raises:
        UploadTooLargeError: Once more than max_size bytes have arrived
        UploadCancelledError: If the token fires or the client disconnects
    """
    received = 0
    try:
        async for chunk in request.stream():
            cancellation.raise_if_cancelled()
            received += len(chunk)
            if max_size is not None and received > max_size:
                raise UploadTooLargeError(limit=max_size, received=received)
            if chunk:
                yield chunk
    except ClientDisconnect:
        cancellation.cancel("client disconnected")
        cancellation.raise_if_cancelled()


async def watch_for_disconnect(request: Request, cancellation: CancellationToken) -> None:
    """
    Cancel the token when the client goes away.

    Only valid once the body has been consumed: every further message on the
    request channel is then a disconnect.
    """
    while not cancellation.cancelled:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            cancellation.cancel("client disconnected")
            logger.info("Client disconnected during indexing", extra={"event": "client_disconnected"})
            return


@asynccontextmanager
async def disconnect_watcher(request: Request, cancellation: CancellationToken) -> AsyncIterator[None]:
    """Run watch_for_disconnect in the background for the duration of the context."""
    task = asyncio.create_task(watch_for_disconnect(request, cancellation))
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class UploadSource:
    """
    The inbound payload of one request.

    Either a file field of a parsed form or the raw request body.
    """

    def __init__(
        self,
        body: AsyncIterator[bytes] | None = None,
        form: FormData | None = None,
        upload: UploadFile | None = None,
    ):
        self._body = body
        self._form = form
        self._upload = upload

    @property
    def is_form_file(self) -> bool:
        return self._upload is not None

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the payload in chunks."""
        if self._upload is not None:
            while True:
                chunk = await self._upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
            return

        if self._body is not None:
            async for chunk in self._body:
                yield chunk

    async def aclose(self) -> None:
        """Release the source, closing any spooled form files."""
        if self._form is not None:
            await self._form.close()


async def parse_form(request: Request, body: AsyncGenerator[bytes, None]) -> FormData:
    """
    Parse a form-encoded body read from the given stream.

    Raises:
        MalformedUploadError: If the body cannot be parsed
    """
    try:
        if media_type(request) == MULTIPART_CONTENT_TYPE:
            return await MultiPartParser(request.headers, body).parse()
        return await FormParser(request.headers, body).parse()
    except MultiPartException as e:
        raise MalformedUploadError(f"Malformed form upload: {e.message}") from e


async def open_upload_source(
    request: Request,
    cancellation: CancellationToken,
    max_size: int | None = None,
) -> UploadSource | None:
    """
    Select the payload source of a publish request.

    Form-encoded requests use their first file field. A form without a file
    field has no payload, since its body was the form itself.

    Raises:
        MalformedUploadError: If a form body cannot be parsed
        UploadTooLargeError: If the declared or received body exceeds max_size
        UploadCancelledError: If the token fires or the client disconnects
    """
    declared = declared_content_length(request)
    if max_size is not None and declared is not None and declared > max_size:
        raise UploadTooLargeError(limit=max_size, received=declared)

    body = limited_body(request, cancellation, max_size)
    if not has_form_content_type(request):
        return UploadSource(body=body)

    form = await parse_form(request, body)
    upload = first_upload_file(form)
    if upload is None:
        await form.close()
        return None
    return UploadSource(form=form, upload=upload)


def _discard(scratch: BinaryIO) -> None:
    """Close and delete a scratch file."""
    try:
        scratch.close()
    finally:
        Path(scratch.name).unlink(missing_ok=True)


async def _copy_to_scratch(
    source: UploadSource,
    cancellation: CancellationToken,
    scratch_dir: Path | None,
) -> BinaryIO | None:
    scratch = tempfile.NamedTemporaryFile(
        mode="w+b",
        prefix=SCRATCH_PREFIX,
        suffix=SCRATCH_SUFFIX,
        dir=scratch_dir,
        delete=False,
    )
    size = 0
    try:
        async for chunk in source.chunks():
            cancellation.raise_if_cancelled()
            size += len(chunk)
            await run_in_threadpool(scratch.write, chunk)

        cancellation.raise_if_cancelled()
        await run_in_threadpool(scratch.flush)
    except BaseException:
        _discard(scratch)
        raise

    if size == 0:
        _discard(scratch)
        return None

    scratch.seek(0)
    logger.debug(
        "Materialized upload",
        extra={
            "event": "upload_materialized",
            "size_bytes": size,
            "source": "form_file" if source.is_form_file else "body",
        },
    )
    return scratch


@asynccontextmanager
async def materialize_upload(
    request: Request,
    cancellation: CancellationToken,
    *,
    scratch_dir: Path | None = None,
    max_size: int | None = None,
) -> AsyncIterator[BinaryIO | None]:
    """
    Materialize a request's payload into a seekable scratch file.

    Yields None when the request carries no payload. The scratch file is
    deleted when the context exits, whichever way it exits, and the inbound
    source is released once copying ends.

    Args:
        request: Incoming publish request
        cancellation: Token checked between chunks
        scratch_dir: Directory for the scratch file (system temp if None)
        max_size: Maximum payload size in bytes, applied to the declared
            Content-Length and to the bytes actually received

    Raises:
        MalformedUploadError: If a form body cannot be parsed
        UploadTooLargeError: If the payload exceeds max_size
        UploadCancelledError: If the token fires or the client disconnects
    """
    source = await open_upload_source(request, cancellation, max_size)
    if source is None:
        yield None
        return

    scratch = None
    try:
        scratch = await _copy_to_scratch(source, cancellation, scratch_dir)
    finally:
        try:
            await source.aclose()
        except BaseException:
            if scratch is not None:
                _discard(scratch)
            raise

    if scratch is None:
        yield None
        return

    try:
        yield scratch
    finally:
        _discard(scratch)
