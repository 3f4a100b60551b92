"""Route dependencies and helpers

Provides clean access to application state without Law of Demeter violations,
plus bounded request-body decoding for the JSON and upload routes.
"""
from typing import Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError
from starlette.datastructures import FormData
from starlette.types import Message

from app_state import AppState
from config import MAX_FILES_PER_UPLOAD, MULTIPART_OVERHEAD_BYTES
from errors import MalformedRequestError, PayloadTooLargeError
from storage import validate_task_id

Model = TypeVar("Model", bound=BaseModel)


def get_app_state(request: Request) -> AppState:
    """Get AppState from request

    Encapsulates the request.app.state.app_state chain.

    Usage:
        @router.get("/example")
        async def example(request: Request):
            app_state = get_app_state(request)
    """
    return request.app.state.app_state


async def read_body(request: Request, limit: int) -> bytes:
    """Collect the request body, failing as soon as it passes limit bytes

    A declared Content-Length above the limit fails before anything is read.

    Raises:
        PayloadTooLargeError: body exceeds limit
    """
    _check_declared_length(request, limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(f"Request body exceeds {limit} bytes")
    return bytes(body)


async def read_upload_form(request: Request, per_file_limit: int,
                           max_files: int = MAX_FILES_PER_UPLOAD) -> FormData:
    """Parse a multipart upload without buffering past its bound

    The whole request may carry max_files files of per_file_limit bytes
    plus framing. Checked against Content-Length before parsing, then
    against the bytes actually received while the form is parsed.

    Raises:
        PayloadTooLargeError: request exceeds the bound
    """
    limit = per_file_limit * max_files + MULTIPART_OVERHEAD_BYTES
    _check_declared_length(request, limit)

    received = 0
    receive = request.receive

    async def bounded_receive() -> Message:
        nonlocal received
        message = await receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > limit:
                raise PayloadTooLargeError(f"Upload exceeds {limit} bytes")
        return message

    return await Request(request.scope, bounded_receive).form(max_files=max_files)


def _check_declared_length(request: Request, limit: int):
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(f"Request body exceeds {limit} bytes")


async def decode_body(request: Request, model: Type[Model]) -> Model:
    """Read a bounded JSON body and validate it into model

    Raises:
        PayloadTooLargeError: body exceeds the configured bound
        MalformedRequestError: body is not valid JSON for model
    """
    limit = get_app_state(request).get_max_body_bytes()
    raw = await read_body(request, limit)
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedRequestError(f"Invalid request body: {e.errors()[0]['msg']}") from e


def checked_task_id(task_id: str) -> str:
    """Path-parameter guard; InvalidTaskIdError renders as HTTP 400"""
    return validate_task_id(task_id)
