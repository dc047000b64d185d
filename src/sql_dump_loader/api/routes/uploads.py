"""Dump upload route."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.requests import ClientDisconnect

from sql_dump_loader.api.dependencies import (
    get_import_service,
    get_upload_receiver,
    require_basic_auth,
)
from sql_dump_loader.application.services import ImportJobService, UploadReceiver
from sql_dump_loader.domain.errors import NoRequestBodyError, UploadTooLargeError
from sql_dump_loader.domain.monitoring_models import UploadAcceptedResponse

UPLOAD_ACCEPTED_MESSAGE = "Upload complete. SQL migration started."

router = APIRouter(tags=["uploads"], dependencies=[Depends(require_basic_auth)])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, NoRequestBodyError | ClientDisconnect):
        raise HTTPException(status_code=400, detail="No body stream")
    if isinstance(exc, UploadTooLargeError):
        raise HTTPException(status_code=413, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected upload error")


def _declared_size(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@router.post(
    "/upload",
    response_model=UploadAcceptedResponse,
    responses={400: {"description": "No body stream"}, 413: {"description": "Too large"}},
)
async def upload_dump(
    request: Request,
    filename: str | None = Query(default=None),
    receiver: UploadReceiver = Depends(get_upload_receiver),
    service: ImportJobService = Depends(get_import_service),
) -> JSONResponse:
    """Store the request body and start the import in the background.

    The response only confirms the upload; extraction and import outcomes are
    reported through the job status routes and the logs.
    """

    try:
        path = await receiver.receive(
            request.stream(),
            filename=filename,
            declared_size=_declared_size(request),
        )
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)

    job = await service.submit(path)
    return JSONResponse(
        status_code=200,
        content=UploadAcceptedResponse(message=UPLOAD_ACCEPTED_MESSAGE).model_dump(),
        headers={"Location": request.url_for("get_import_job", id=job.job_id).path},
    )


__all__ = ["UPLOAD_ACCEPTED_MESSAGE", "router"]
