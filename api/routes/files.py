"""Task file routes: upload inputs, list and download files, collect outputs."""
import logging
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Query, Request, Response
from starlette.datastructures import FormData, UploadFile

from config import TASKS_PREFIX
from errors import MalformedRequestError, PayloadTooLargeError
from models import EmptyResponse, FileDetail, StoredOutputsResponse, TaskFilesResponse, UploadResponse
from routes.deps import checked_task_id, get_app_state, read_upload_form
from value_objects import FileDirection

logger = logging.getLogger(__name__)

router = APIRouter(prefix=TASKS_PREFIX)


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename*=utf-8''{quoted}"


@router.post("/{task_id}/files", response_model=UploadResponse)
async def upload_files(task_id: str, request: Request):
    """Store the multipart `files` parts as task inputs

    Every file is checked against the size limit before any is written,
    so a rejected upload leaves the task untouched. Returns the absolute
    paths of the stored files in upload order.
    """
    task_id = checked_task_id(task_id)
    app_state = get_app_state(request)
    storage = app_state.get_file_storage()
    limit = app_state.get_max_upload_bytes()

    form = await read_upload_form(request, limit)
    try:
        uploads = _uploaded_files(form, limit)
        saved = []
        for upload in uploads:
            data = await upload.read()
            path = await storage.save_uploaded_file(data, upload.filename or "", task_id)
            saved.append(str(path))
    except OSError as e:
        logger.error(f"Upload failed for task {task_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await form.close()

    return UploadResponse(task_id=task_id, files=saved)


def _uploaded_files(form: FormData, limit: int) -> List[UploadFile]:
    uploads = [part for part in form.getlist("files") if isinstance(part, UploadFile)]
    if not uploads:
        raise MalformedRequestError("Field 'files' must carry at least one file")
    for upload in uploads:
        if upload.size is None or upload.size > limit:
            raise PayloadTooLargeError(f"File '{upload.filename}' exceeds {limit} bytes")
    return uploads


@router.get("/{task_id}/files", response_model=TaskFilesResponse, response_model_exclude_none=True)
async def list_files(task_id: str, request: Request):
    task_id = checked_task_id(task_id)
    storage = get_app_state(request).get_file_storage()
    try:
        inputs = await storage.get_uploaded_files(task_id)
        outputs = await storage.get_output_files(task_id)
    except OSError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return TaskFilesResponse(
        task_id=task_id,
        input_files=[FileDetail.from_stored_file(f) for f in inputs],
        output_files=[FileDetail.from_stored_file(f) for f in outputs],
    )


@router.get("/{task_id}/files/{filename}")
async def download_file(task_id: str, filename: str, request: Request,
                        direction: FileDirection = Query(FileDirection.INPUT, alias="type")):
    """Raw bytes of one task file, served as an attachment"""
    task_id = checked_task_id(task_id)
    storage = get_app_state(request).get_file_storage()
    try:
        data, mime_type = await storage.get_file_data(task_id, filename, direction)
    except OSError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return Response(
        content=data,
        media_type=mime_type,
        headers={"Content-Disposition": _content_disposition(filename)},
    )


@router.post("/{task_id}/outputs", response_model=StoredOutputsResponse,
             response_model_exclude_none=True)
async def collect_outputs(task_id: str, request: Request):
    """Copy the task's outbox into its output directory

    A task with no outbox yields an empty output list.
    """
    task_id = checked_task_id(task_id)
    app_state = get_app_state(request)
    storage = app_state.get_file_storage()
    outbox = app_state.get_outbox_directory() / task_id
    try:
        await storage.store_output_files(outbox, task_id)
        outputs = await storage.get_output_files(task_id)
    except OSError as e:
        logger.error(f"Collecting outputs failed for task {task_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return StoredOutputsResponse(
        task_id=task_id,
        output_files=[FileDetail.from_stored_file(f) for f in outputs],
    )


@router.delete("/{task_id}/files", response_model=EmptyResponse)
async def delete_files(task_id: str, request: Request):
    task_id = checked_task_id(task_id)
    try:
        await get_app_state(request).get_file_storage().delete_task_files(task_id)
    except OSError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return EmptyResponse()
